"""
Syntax tree parsers for the tree dump.

Parsers are looked up by file extension through the registry; extensions
without a parser get the ``unparsed`` sentinel.
"""

from .javascript_parser import JavaScriptParser
from .registry import ParserInfo, ParserRegistry, get_parser_registry

__all__ = [
    'JavaScriptParser',
    'ParserInfo',
    'ParserRegistry',
    'get_parser_registry',
]
