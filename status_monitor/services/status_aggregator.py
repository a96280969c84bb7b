"""状态聚合器

把本周期的根页面判定、组件判定与上一次快照合并为新的快照。
"""

from datetime import datetime
from typing import List, Optional

from ..models.status import HealthState, CheckVerdict, ComponentStatus, ServiceSnapshot
from ..models.target import TargetDefinition
from ..utils.log_manager import get_logger


class StatusAggregator:
    """状态聚合器"""

    def __init__(self):
        self.logger = get_logger('service.aggregator')

    @staticmethod
    def overall_state(verdict: CheckVerdict, components: List[ComponentStatus]) -> HealthState:
        return HealthState.worst([verdict.state] + [c.state for c in components])

    @staticmethod
    def error_message(verdict: CheckVerdict, components: List[ComponentStatus]) -> Optional[str]:
        if verdict.state is not HealthState.OPERATIONAL:
            return verdict.error_message

        broken = [c for c in components if c.state is not HealthState.OPERATIONAL]
        if not broken:
            return None

        worst = max(broken, key=lambda c: c.state.severity)
        label = worst.name or worst.component_id
        return f"{label}: {worst.error_message or worst.state.value}"

    def aggregate(self, target: TargetDefinition, verdict: CheckVerdict,
                  components: List[ComponentStatus],
                  prior: Optional[ServiceSnapshot] = None,
                  now: Optional[datetime] = None) -> ServiceSnapshot:
        """
        计算新快照

        Args:
            target: 目标定义
            verdict: 根页面判定
            components: 组件判定
            prior: 上一次的快照，首次检查时为 None
            now: 检查时间

        Returns:
            ServiceSnapshot: 新的不可变快照
        """
        now = now or datetime.now()
        state = self.overall_state(verdict, components)

        if state is HealthState.OPERATIONAL:
            consecutive_failures = 0
            last_healthy_at = now
        else:
            consecutive_failures = (prior.consecutive_failures if prior else 0) + 1
            last_healthy_at = prior.last_healthy_at if prior else None

        if prior and prior.state is not state:
            self.logger.info(f"目标 {target.id} 状态变化: {prior.state.value} -> {state.value}")

        return ServiceSnapshot(
            target_id=target.id,
            name=target.name,
            url=target.url,
            kind=target.kind.value,
            state=state,
            status_code=verdict.status_code,
            elapsed_ms=verdict.elapsed_ms,
            error_message=self.error_message(verdict, components),
            checked_at=now,
            last_healthy_at=last_healthy_at,
            consecutive_failures=consecutive_failures,
            components=list(components),
        )
