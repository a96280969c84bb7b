"""功能性检查

对关键组件直接请求一个已知的API入口（不带真实凭据）。
只要对方给出 2xx-4xx 响应就说明子系统还活着，
只有 5xx 或网络失败才判定为 down。
"""

from typing import Optional

from .http_probe import HttpProbe
from ..models.status import HealthState, ComponentStatus, FailureKind, ProbeResult
from ..models.target import ComponentDefinition
from ..utils.log_manager import get_logger


class FunctionalChecker:
    """功能性检查器"""

    def __init__(self, probe: HttpProbe):
        self.probe = probe
        self.logger = get_logger('checker.functional')

    @staticmethod
    def state_for(probe_result: ProbeResult) -> HealthState:
        if probe_result.failure_kind in (None, FailureKind.CLIENT_ERROR):
            return HealthState.OPERATIONAL
        return HealthState.DOWN

    async def check(self, component: ComponentDefinition,
                    timeout: Optional[float] = None) -> ComponentStatus:
        """
        对组件执行一次功能性探测

        Args:
            component: 组件定义（需要 check_url）
            timeout: 超时时间

        Returns:
            ComponentStatus: source 为 functional
        """
        # 仅用于确认服务存活，请求体故意为空
        json_body = {} if component.check_method == 'POST' else None
        result = await self.probe.probe(component.check_url, method=component.check_method,
                                        timeout=timeout, json_body=json_body)
        state = self.state_for(result)

        self.logger.debug(f"组件 {component.id} 功能性检查: 状态码={result.status_code}, "
                          f"判定={state.value}")

        return ComponentStatus(
            component_id=component.id,
            name=component.name,
            state=state,
            elapsed_ms=result.elapsed_ms,
            status_code=result.status_code,
            error_message=None if state is HealthState.OPERATIONAL else result.error_message,
            source='functional',
        )


def merge_verdicts(text_status: ComponentStatus,
                   functional_status: ComponentStatus) -> ComponentStatus:
    """
    合并文本判定和功能性判定

    文本为 unknown（页面未提及）而功能性检查正常时采用功能性判定；
    其余情况取两者中较差的状态。状态码和耗时总是取功能性探测的值。
    """
    if (text_status.state is HealthState.UNKNOWN
            and functional_status.state is HealthState.OPERATIONAL):
        return functional_status

    if functional_status.state.severity > text_status.state.severity:
        return functional_status

    return ComponentStatus(
        component_id=text_status.component_id,
        name=text_status.name,
        state=text_status.state,
        elapsed_ms=functional_status.elapsed_ms,
        status_code=functional_status.status_code,
        error_message=text_status.error_message,
        checked_at=functional_status.checked_at,
        source=text_status.source,
    )
