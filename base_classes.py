"""
Base Classes for the Corpus Extract Pipeline
============================================

Contains core data structures and abstract base classes used throughout the pipeline.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BuildMode(Enum):
    """How the orchestrator treats partials that already exist"""
    MISSING = "missing"   # Build only packages without a complete partial
    REBUILD = "rebuild"   # Rebuild every package, reusing cached listings


class TreeStatus(Enum):
    PARSED = "parsed"
    MINIFIED = "minified"
    UNPARSED = "unparsed"


@dataclass(frozen=True)
class TreeDump:
    """Result of turning one source file into a tree-dump value.

    Either a parsed tree or one of the sentinels; the sentinel string only
    appears once the value is serialized.
    """
    status: TreeStatus
    tree: Optional[Dict[str, Any]] = None

    @classmethod
    def parsed(cls, tree: Dict[str, Any]) -> 'TreeDump':
        return cls(TreeStatus.PARSED, tree)

    @classmethod
    def minified(cls) -> 'TreeDump':
        return cls(TreeStatus.MINIFIED)

    @classmethod
    def unparsed(cls) -> 'TreeDump':
        return cls(TreeStatus.UNPARSED)

    def to_json_value(self) -> Any:
        if self.status is TreeStatus.PARSED:
            return self.tree
        return self.status.value


class SourceParser(ABC):
    """Abstract base class for source parsers used by the tree dump"""

    @abstractmethod
    def parse_script(self, content: str) -> Dict[str, Any]:
        """Parse content as a standalone script; raise on failure"""

    @abstractmethod
    def parse_module(self, content: str) -> Dict[str, Any]:
        """Parse content as a module; raise on failure"""


@dataclass
class PartialResult:
    """Outcome of one successful partial build"""
    package_id: str
    files: int = 0
    slim_files: int = 0
    lines_dumped: Dict[str, int] = field(default_factory=dict)
    trees_dumped: Dict[str, int] = field(default_factory=dict)
    listing_reused: bool = False


@dataclass
class BatchSummary:
    """Counts reported at the end of a partials run"""
    built: int = 0
    errors: int = 0
    removed: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return (f"built {self.built}, errors: {self.errors}, "
                f"removed: {self.removed}, skipped: {self.skipped}")


@dataclass
class TotalsSummary:
    """Counts reported at the end of a totals run"""
    packages: int = 0
    partials: int = 0
    artifacts: List[str] = field(default_factory=list)
    tree_entries: Dict[str, int] = field(default_factory=dict)
