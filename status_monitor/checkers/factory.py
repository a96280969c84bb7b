"""状态页解析器工厂"""

from typing import Dict, Type, List

from .base import BaseStatusPageParser, DEFAULT_CONTEXT_RADIUS
from ..utils.exceptions import ProbeError, ErrorCode


class ParserFactory:
    """解析器工厂类，按名称注册和创建状态页解析器"""

    def __init__(self):
        self._parsers: Dict[str, Type[BaseStatusPageParser]] = {}

    def register_parser(self, parser_name: str, parser_class: Type[BaseStatusPageParser]):
        """
        注册解析器类

        Args:
            parser_name: 解析器名称（对应目标配置中的 parser）
            parser_class: 解析器类

        Raises:
            ProbeError: 注册失败
        """
        if not issubclass(parser_class, BaseStatusPageParser):
            raise ProbeError(f"解析器类 {parser_class.__name__} 必须继承自 BaseStatusPageParser",
                             ErrorCode.PARSER_REGISTRATION_ERROR)

        if parser_name in self._parsers:
            raise ProbeError(f"解析器 '{parser_name}' 已经注册",
                             ErrorCode.PARSER_REGISTRATION_ERROR)

        self._parsers[parser_name] = parser_class

    def unregister_parser(self, parser_name: str):
        self._parsers.pop(parser_name, None)

    def create_parser(self, parser_name: str,
                      context_radius: int = DEFAULT_CONTEXT_RADIUS) -> BaseStatusPageParser:
        """
        创建解析器实例

        Raises:
            ProbeError: 解析器名称未注册
        """
        if parser_name not in self._parsers:
            raise ProbeError(f"不支持的状态页解析器: '{parser_name}'",
                             ErrorCode.PARSER_REGISTRATION_ERROR)

        return self._parsers[parser_name](context_radius=context_radius)

    def get_supported_parsers(self) -> List[str]:
        return list(self._parsers.keys())

    def is_parser_supported(self, parser_name: str) -> bool:
        return parser_name in self._parsers


# 全局工厂实例
parser_factory = ParserFactory()


def register_parser(parser_name: str):
    """
    装饰器：注册状态页解析器类

    Args:
        parser_name: 解析器名称
    """
    def decorator(parser_class: Type[BaseStatusPageParser]):
        parser_factory.register_parser(parser_name, parser_class)
        return parser_class

    return decorator
