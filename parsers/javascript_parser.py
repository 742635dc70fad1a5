"""
JavaScript Syntax Tree Parser
=============================

Wraps ``esprima`` so the tree dump can try a source file as a classic script
first and as an ES module second. Trees are returned as plain JSON-ready
dicts in ESTree shape.
"""

import logging
from typing import Any, Dict

import esprima

from base_classes import SourceParser

logger = logging.getLogger(__name__)


def to_plain(value: Any) -> Any:
    """Convert esprima node objects into JSON-serializable values"""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if hasattr(value, '__dict__'):
        return {k: to_plain(v) for k, v in vars(value).items() if not k.startswith('_')}
    # Compiled regex literals and other runtime-only values
    return str(value)


class JavaScriptParser(SourceParser):
    """ESTree parser for JavaScript sources"""

    EXTENSIONS = ['.js']
    LANGUAGE = 'javascript'
    DESCRIPTION = 'esprima-based ESTree parser'

    def __init__(self, tolerant: bool = False):
        self.options = {'tolerant': tolerant}

    def parse_script(self, content: str) -> Dict[str, Any]:
        return to_plain(esprima.parseScript(content, self.options))

    def parse_module(self, content: str) -> Dict[str, Any]:
        return to_plain(esprima.parseModule(content, self.options))
