"""状态页解析器基类"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from bs4 import BeautifulSoup, Comment

from ..models.status import HealthState
from ..models.target import ComponentDefinition
from ..utils.log_manager import get_logger

DEFAULT_CONTEXT_RADIUS = 150

INVISIBLE_TAGS = ['script', 'style', 'noscript', 'template']

_WHITESPACE_RE = re.compile(r'\s+')


def strip_html(text: str) -> str:
    """去掉HTML标签、注释和脚本，保留可见文本（实体已解码）"""
    soup = BeautifulSoup(text, 'html.parser')

    for tag in soup.find_all(INVISIBLE_TAGS):
        tag.decompose()

    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()

    return soup.get_text(' ')


def normalize_text(text: str) -> str:
    """小写并把连续空白压缩成一个空格"""
    return _WHITESPACE_RE.sub(' ', text).strip().lower()


@dataclass(frozen=True)
class ParsedComponent:
    """单个组件在状态页上的解析结果"""
    state: HealthState
    found: bool = True
    matched_name: Optional[str] = None
    matched_term: Optional[str] = None


class BaseStatusPageParser(ABC):
    """状态页解析器抽象基类

    子类只需要给出组件在页面上可能出现的名称；关键词分级在这里统一完成：
    故障类 > 降级/部分故障类 > 正常类，窗口内命中的最高级别胜出。
    """

    # 按优先级从高到低排列
    KEYWORD_CATEGORIES: Tuple[Tuple[HealthState, Pattern], ...] = (
        (HealthState.MAJOR_OUTAGE, re.compile(
            r'\b(major outage|(?<!partial )outage|down|offline|unavailable|service disruption)\b')),
        (HealthState.PARTIAL_OUTAGE, re.compile(r'\bpartial outage\b')),
        (HealthState.DEGRADED, re.compile(
            r'\b(degraded performance|degraded|elevated errors?|increased latency'
            r'|investigating|disrupted)\b')),
        (HealthState.OPERATIONAL, re.compile(
            r'\b(operational|no issues|all systems normal|available)\b')),
    )

    def __init__(self, context_radius: int = DEFAULT_CONTEXT_RADIUS):
        """
        初始化解析器

        Args:
            context_radius: 组件名称两侧检查的字符数
        """
        self.context_radius = context_radius
        self.parser_type = self.__class__.__name__.replace('StatusPageParser', '').lower()
        self.logger = get_logger(f'checker.parser.{self.parser_type}')

    @abstractmethod
    def component_names(self, component: ComponentDefinition) -> List[str]:
        """
        返回组件在页面上可能出现的名称（按优先顺序）

        Args:
            component: 组件定义
        """
        pass

    def prepare(self, body: str) -> str:
        """把原始响应体转换成可搜索的规范化文本"""
        return normalize_text(strip_html(body))

    def classify_window(self, window: str) -> Tuple[Optional[HealthState], Optional[str]]:
        """返回窗口内命中的最高优先级类别及命中的词"""
        for state, pattern in self.KEYWORD_CATEGORIES:
            match = pattern.search(window)
            if match:
                return state, match.group(0)
        return None, None

    def parse_component(self, text: str, component: ComponentDefinition) -> ParsedComponent:
        """
        在规范化后的页面文本中推断组件状态

        Args:
            text: prepare() 处理后的页面文本
            component: 组件定义

        Returns:
            ParsedComponent: 未找到组件名称时 found=False，状态为 unknown
        """
        best_state: Optional[HealthState] = None
        best_term: Optional[str] = None
        best_name: Optional[str] = None

        for name in self._unique_names(component):
            start = text.find(name)
            while start != -1:
                end = start + len(name)
                window = text[max(0, start - self.context_radius):end + self.context_radius]
                state, term = self.classify_window(window)

                if best_name is None:
                    best_name = name
                if state is not None and (best_state is None or state.severity > best_state.severity):
                    best_state, best_term, best_name = state, term, name

                start = text.find(name, end)

        if best_name is None:
            self.logger.debug(f"页面中未找到组件 {component.id}，判定为 unknown")
            return ParsedComponent(state=HealthState.UNKNOWN, found=False)

        # 页面提到了组件但附近没有任何状态词
        return ParsedComponent(
            state=best_state or HealthState.OPERATIONAL,
            matched_name=best_name,
            matched_term=best_term,
        )

    def _unique_names(self, component: ComponentDefinition) -> List[str]:
        names = []
        for name in self.component_names(component):
            key = normalize_text(name)
            if key and key not in names:
                names.append(key)
        return names
