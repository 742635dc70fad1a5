"""
Pluggable Parser Registry
=========================

Maps file extensions to syntax tree parsers. Built-in parsers are registered
first, then any parsers published under the ``corpus_extract.parsers`` entry
point group, then runtime registrations.
"""

import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Dict, List, Optional, Type

from base_classes import SourceParser

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = 'corpus_extract.parsers'


@dataclass
class ParserInfo:
    """Information about a parser plugin"""
    name: str
    parser_class: Type[SourceParser]
    extensions: List[str]
    language: str
    priority: int = 0  # Higher priority parsers override lower priority ones
    source: str = "builtin"  # "builtin", "plugin", "custom"
    description: str = ""


class ParserRegistry:
    """Central registry for source parsers"""

    def __init__(self):
        self._parsers: Dict[str, ParserInfo] = {}
        self._extension_map: Dict[str, str] = {}  # extension -> parser_name
        self._instances: Dict[str, SourceParser] = {}
        self._loaded = False

    def _load_builtin_parsers(self):
        from .javascript_parser import JavaScriptParser
        self._register_parser(ParserInfo(
            name="javascript",
            parser_class=JavaScriptParser,
            extensions=list(JavaScriptParser.EXTENSIONS),
            language=JavaScriptParser.LANGUAGE,
            description=JavaScriptParser.DESCRIPTION
        ))

    def _load_plugin_parsers(self):
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                parser_class = ep.load()
            except Exception as e:
                logger.error(f"Failed to load plugin parser {ep.name}: {e}")
                continue

            if not (isinstance(parser_class, type) and issubclass(parser_class, SourceParser)):
                logger.error(f"Plugin parser {ep.name} is not a SourceParser subclass")
                continue

            self._register_parser(ParserInfo(
                name=ep.name,
                parser_class=parser_class,
                extensions=getattr(parser_class, 'EXTENSIONS', [f".{ep.name}"]),
                language=getattr(parser_class, 'LANGUAGE', ep.name),
                priority=getattr(parser_class, 'PRIORITY', 10),
                source="plugin",
                description=getattr(parser_class, 'DESCRIPTION', "")
            ))
            logger.info(f"Loaded plugin parser: {ep.name}")

    def _register_parser(self, parser_info: ParserInfo):
        name = parser_info.name
        existing = self._parsers.get(name)
        if existing is not None and parser_info.priority <= existing.priority:
            logger.warning(f"Parser {name} already registered with higher priority")
            return

        self._parsers[name] = parser_info
        self._instances.pop(name, None)
        for ext in parser_info.extensions:
            current = self._extension_map.get(ext)
            if current is None or current == name \
                    or parser_info.priority > self._parsers[current].priority:
                self._extension_map[ext] = name
            else:
                logger.debug(f"Extension {ext} already handled by higher priority parser")

    def load_parsers(self, force_reload: bool = False):
        """Load all available parsers"""
        if self._loaded and not force_reload:
            return
        if force_reload:
            self._parsers.clear()
            self._extension_map.clear()
            self._instances.clear()

        self._load_builtin_parsers()
        self._load_plugin_parsers()
        self._loaded = True
        logger.debug(f"Loaded {len(self._parsers)} parsers for {sorted(self._extension_map)}")

    def register_custom_parser(self, name: str, parser_class: Type[SourceParser],
                               extensions: List[str], language: str, priority: int = 20):
        """Register a custom parser at runtime"""
        if not self._loaded:
            self.load_parsers()
        self._register_parser(ParserInfo(
            name=name,
            parser_class=parser_class,
            extensions=extensions,
            language=language,
            priority=priority,
            source="custom",
            description=f"Custom {language} parser"
        ))

    def get_parser_for_extension(self, extension: str) -> Optional[SourceParser]:
        """Shared parser instance for an extension, or None when unsupported"""
        if not self._loaded:
            self.load_parsers()
        name = self._extension_map.get(extension.lower())
        if name is None:
            return None
        if name not in self._instances:
            self._instances[name] = self._parsers[name].parser_class()
        return self._instances[name]

    def list_supported_extensions(self) -> List[str]:
        if not self._loaded:
            self.load_parsers()
        return sorted(self._extension_map)


_global_registry: Optional[ParserRegistry] = None


def get_parser_registry() -> ParserRegistry:
    global _global_registry
    if _global_registry is None:
        _global_registry = ParserRegistry()
    return _global_registry
