"""
Pipeline stages for the corpus extract system.
"""

from .streams import PackedWriter, StreamCopier
from .exclusions import ExclusionRules, PatternCompiler
from .archive import ArchiveLister
from .json_stream import JsonObjectWriter
from .partial import PartialBuilder
from .totals import AggregationEngine

__all__ = [
    'PackedWriter',
    'StreamCopier',
    'ExclusionRules',
    'PatternCompiler',
    'ArchiveLister',
    'JsonObjectWriter',
    'PartialBuilder',
    'AggregationEngine',
]
