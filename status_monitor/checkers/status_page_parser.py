"""各服务商的状态页解析器

解析结果只是启发式信号，不具备权威性。
"""

from typing import List, Tuple

from .base import BaseStatusPageParser
from .factory import register_parser
from ..models.target import ComponentDefinition


@register_parser('keyword')
class KeywordStatusPageParser(BaseStatusPageParser):
    """通用关键词解析器：按组件名称和配置的别名搜索"""

    def component_names(self, component: ComponentDefinition) -> List[str]:
        return [component.name, *component.aliases]


class BrandStatusPageParser(KeywordStatusPageParser):
    """去掉品牌前缀后额外作为别名搜索，例如 Firebase Authentication -> Authentication"""

    BRAND_PREFIXES: Tuple[str, ...] = ()

    def component_names(self, component: ComponentDefinition) -> List[str]:
        names = super().component_names(component)
        stripped = []
        for name in names:
            lowered = name.lower()
            for prefix in self.BRAND_PREFIXES:
                if lowered.startswith(prefix):
                    stripped.append(name[len(prefix):].strip())
                    break
        return names + [name for name in stripped if name]


@register_parser('firebase')
class FirebaseStatusPageParser(BrandStatusPageParser):
    """Firebase 状态页解析器"""

    BRAND_PREFIXES = ('firebase ', 'cloud ')


@register_parser('google')
class GoogleStatusPageParser(BrandStatusPageParser):
    """Google Cloud 状态页解析器"""

    BRAND_PREFIXES = ('google cloud ', 'google ', 'cloud ')
