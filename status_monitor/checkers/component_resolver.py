"""组件状态解析器

根据父页面内容推断每个子组件的状态，必要时叠加功能性检查。
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from .base import BaseStatusPageParser, DEFAULT_CONTEXT_RADIUS
from .factory import ParserFactory, parser_factory
from .functional_checker import FunctionalChecker, merge_verdicts
from ..models.status import HealthState, ComponentStatus, ProbeResult
from ..models.target import TargetDefinition, ComponentDefinition
from ..utils.log_manager import get_logger

NOT_FOUND_MESSAGE = '状态页未提及该组件'


class ComponentStatusResolver:
    """组件状态解析器"""

    def __init__(self, functional_checker: FunctionalChecker,
                 context_radius: int = DEFAULT_CONTEXT_RADIUS,
                 factory: Optional[ParserFactory] = None):
        """
        初始化组件状态解析器

        Args:
            functional_checker: 功能性检查器
            context_radius: 组件名称两侧检查的字符数
            factory: 解析器工厂，默认使用全局工厂
        """
        self.functional_checker = functional_checker
        self.context_radius = context_radius
        self.factory = factory or parser_factory
        self._parsers: Dict[str, BaseStatusPageParser] = {}
        self.logger = get_logger('checker.component_resolver')

    def get_parser(self, parser_name: str) -> BaseStatusPageParser:
        if parser_name not in self._parsers:
            self._parsers[parser_name] = self.factory.create_parser(
                parser_name, context_radius=self.context_radius)
        return self._parsers[parser_name]

    async def resolve(self, target: TargetDefinition,
                      root_probe: ProbeResult) -> List[ComponentStatus]:
        """
        解析目标所有子组件的状态

        Args:
            target: 目标定义
            root_probe: 根页面的探测结果

        Returns:
            List[ComponentStatus]: 与配置顺序一致
        """
        if not target.components:
            return []

        now = datetime.now()

        # 根页面本身不可用时不再逐个检查
        if root_probe.page_unavailable:
            message = root_probe.error_message or '根页面不可用'
            return [
                ComponentStatus(
                    component_id=component.id,
                    name=component.name,
                    state=HealthState.DOWN,
                    error_message=message,
                    checked_at=now,
                    source='root',
                )
                for component in target.components
            ]

        parser = self.get_parser(target.parser)
        text = parser.prepare(root_probe.body or '')

        text_statuses = [self._from_page(parser, text, component, now)
                         for component in target.components]

        functional = [
            (index, component)
            for index, component in enumerate(target.components)
            if component.functional and component.check_url
        ]
        if not functional:
            return text_statuses

        functional_results = await asyncio.gather(*[
            self.functional_checker.check(component, timeout=target.timeout)
            for _, component in functional
        ])

        for (index, _), functional_status in zip(functional, functional_results):
            text_statuses[index] = merge_verdicts(text_statuses[index], functional_status)

        return text_statuses

    def _from_page(self, parser: BaseStatusPageParser, text: str,
                   component: ComponentDefinition, now: datetime) -> ComponentStatus:
        parsed = parser.parse_component(text, component)

        if not parsed.found:
            error_message = NOT_FOUND_MESSAGE
        elif parsed.state is HealthState.OPERATIONAL:
            error_message = None
        else:
            error_message = f"状态页显示 '{parsed.matched_term}'"

        return ComponentStatus(
            component_id=component.id,
            name=component.name,
            state=parsed.state,
            error_message=error_message,
            checked_at=now,
            source='page',
        )
