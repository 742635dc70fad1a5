"""
Pipeline workers that drive stages across the archive set.
"""

from .partials import PartialsOrchestrator

__all__ = [
    'PartialsOrchestrator',
]
