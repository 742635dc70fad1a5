"""
Pipeline Monitoring
===================

Per-stage timing, throughput, error counts and memory high-water marks for
the partials and totals runs. Stages are opened with ``monitor.stage(name)``;
a stage name can run many times and is summarized across its runs.
"""

import logging
import statistics
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)

MEMORY_SAMPLE_EVERY = 1000  # items between rss samples


def _rss() -> int:
    return psutil.Process().memory_info().rss


@dataclass
class StageMetrics:
    """Metrics for one run of a pipeline stage"""
    stage_name: str
    start_time: float
    end_time: Optional[float] = None
    items_processed: int = 0
    bytes_processed: int = 0
    errors: int = 0
    error_types: Counter = field(default_factory=Counter)
    memory_start: int = 0
    memory_peak: int = 0

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    @property
    def duration(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def throughput_items_per_sec(self) -> float:
        if self.duration > 0:
            return self.items_processed / self.duration
        return 0.0

    @property
    def throughput_mb_per_sec(self) -> float:
        if self.duration > 0:
            return (self.bytes_processed / 1024 / 1024) / self.duration
        return 0.0

    def sample_memory(self) -> None:
        self.memory_peak = max(self.memory_peak, _rss())


class MonitoredStage:
    """Context manager around one stage run"""

    def __init__(self, monitor: 'PipelineMonitor', stage_name: str):
        self.monitor = monitor
        self.stage_name = stage_name
        self.metrics: Optional[StageMetrics] = None

    def __enter__(self) -> 'MonitoredStage':
        self.metrics = self.monitor.open_stage(self.stage_name)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is not None:
            self.record_error(exc_val)
        self.monitor.close_stage(self.metrics)

    def update_progress(self, items: int = 0, bytes_count: int = 0) -> None:
        metrics = self.metrics
        if metrics is None or metrics.finished:
            return
        before = metrics.items_processed
        metrics.items_processed += items
        metrics.bytes_processed += bytes_count
        if before // MEMORY_SAMPLE_EVERY != metrics.items_processed // MEMORY_SAMPLE_EVERY:
            metrics.sample_memory()

    def record_error(self, error: BaseException) -> None:
        if self.metrics is None:
            return
        self.metrics.errors += 1
        self.metrics.error_types[type(error).__name__] += 1
        logger.debug(f"Stage {self.stage_name}: recorded {type(error).__name__}: {error}")


class PipelineMonitor:
    """Collects stage metrics for the lifetime of a pipeline"""

    def __init__(self):
        self.stage_metrics: List[StageMetrics] = []

    @property
    def active_stages(self) -> List[StageMetrics]:
        return [s for s in self.stage_metrics if not s.finished]

    def stage(self, stage_name: str) -> MonitoredStage:
        return MonitoredStage(self, stage_name)

    def open_stage(self, stage_name: str) -> StageMetrics:
        memory = _rss()
        metrics = StageMetrics(
            stage_name=stage_name,
            start_time=time.time(),
            memory_start=memory,
            memory_peak=memory
        )
        self.stage_metrics.append(metrics)
        return metrics

    def close_stage(self, metrics: StageMetrics) -> None:
        if metrics.finished:
            return
        metrics.end_time = time.time()
        metrics.sample_memory()
        logger.debug(f"Stage {metrics.stage_name} finished in {metrics.duration:.2f}s, "
                     f"{metrics.items_processed} items, {metrics.errors} errors")

    def get_stage_summary(self, stage_name: str) -> Dict[str, Any]:
        """Summary of every finished run of a stage; empty when it never ran"""
        runs = [s for s in self.stage_metrics if s.stage_name == stage_name and s.finished]
        if not runs:
            return {}

        durations = [s.duration for s in runs]
        error_types = Counter()
        for s in runs:
            error_types.update(s.error_types)
        return {
            'runs': len(runs),
            'avg_duration': statistics.mean(durations),
            'total_duration': sum(durations),
            'total_items': sum(s.items_processed for s in runs),
            'total_bytes': sum(s.bytes_processed for s in runs),
            'total_errors': sum(s.errors for s in runs),
            'error_types': dict(error_types),
            'memory_peak': max(s.memory_peak for s in runs)
        }

    def report(self) -> Dict[str, Dict[str, Any]]:
        """Summaries keyed by stage name, in the order stages first ran"""
        names = list(dict.fromkeys(s.stage_name for s in self.stage_metrics))
        report = {}
        for name in names:
            summary = self.get_stage_summary(name)
            if summary:
                report[name] = summary
        return report

    def log_report(self) -> None:
        for name, summary in self.report().items():
            logger.info(
                f"Stage {name}: {summary['total_items']} items in "
                f"{summary['total_duration']:.2f}s, {summary['total_errors']} errors, "
                f"peak rss {summary['memory_peak'] / 1024 / 1024:.1f} MB"
            )
