"""
Corpus extract pipeline modules.
"""

from .stages.partial import PartialBuilder
from .stages.totals import AggregationEngine
from .workers.partials import PartialsOrchestrator

__all__ = [
    'PartialBuilder',
    'AggregationEngine',
    'PartialsOrchestrator',
]
