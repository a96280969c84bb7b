"""单个目标的一次完整检查尝试

探测根页面 -> 内容分析 -> 组件解析（含功能性检查）。
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from ..checkers.content_analyzer import analyze
from ..checkers.component_resolver import ComponentStatusResolver
from ..checkers.http_probe import HttpProbe
from ..models.status import HealthState, CheckVerdict, ComponentStatus
from ..models.target import TargetDefinition


@dataclass(frozen=True)
class AttemptOutcome:
    """一次检查尝试的结果"""
    verdict: CheckVerdict
    components: List[ComponentStatus] = field(default_factory=list)

    @property
    def overall_state(self) -> HealthState:
        return HealthState.worst([self.verdict.state] + [c.state for c in self.components])

    @property
    def is_operational(self) -> bool:
        return self.overall_state is HealthState.OPERATIONAL

    @classmethod
    def failed(cls, target: TargetDefinition, message: str) -> 'AttemptOutcome':
        """检查过程本身抛出异常时按 down 处理"""
        return cls(
            verdict=CheckVerdict(state=HealthState.DOWN, status_code=None, elapsed_ms=0,
                                 error_message=message),
            components=[
                ComponentStatus(component_id=c.id, name=c.name, state=HealthState.DOWN,
                                error_message=message, source='root')
                for c in target.components
            ],
        )


class TargetPipeline:
    """执行一次目标检查尝试"""

    def __init__(self, probe: HttpProbe, resolver: ComponentStatusResolver,
                 max_concurrent: Optional[int] = None):
        """
        Args:
            probe: HTTP探测器
            resolver: 组件状态解析器
            max_concurrent: 同时进行的检查尝试数上限，None 表示不限制
        """
        self.probe = probe
        self.resolver = resolver
        self.semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None

    async def run(self, target: TargetDefinition) -> AttemptOutcome:
        # 只限制尝试本身，复查前的等待不占用名额
        if self.semaphore is None:
            return await self._run(target)
        async with self.semaphore:
            return await self._run(target)

    async def _run(self, target: TargetDefinition) -> AttemptOutcome:
        probe_result = await self.probe.probe(target.url, timeout=target.timeout)
        verdict = analyze(probe_result, target.signatures, target_id=target.id)
        components = await self.resolver.resolve(target, probe_result)
        return AttemptOutcome(verdict=verdict, components=components)
