"""探测与内容分析模块"""

from .base import BaseStatusPageParser, ParsedComponent, strip_html, normalize_text
from .component_resolver import ComponentStatusResolver
from .content_analyzer import analyze, find_signature
from .factory import ParserFactory, parser_factory, register_parser
from .functional_checker import FunctionalChecker, merge_verdicts
from .http_probe import HttpProbe
from .status_page_parser import (KeywordStatusPageParser, FirebaseStatusPageParser,
                                 GoogleStatusPageParser)

__all__ = ['BaseStatusPageParser', 'ParsedComponent', 'strip_html', 'normalize_text',
           'ComponentStatusResolver', 'analyze', 'find_signature', 'ParserFactory',
           'parser_factory', 'register_parser', 'FunctionalChecker', 'merge_verdicts',
           'HttpProbe', 'KeywordStatusPageParser', 'FirebaseStatusPageParser',
           'GoogleStatusPageParser']
