"""
Unit tests for pipeline monitoring and error types.
"""

import time

import pytest

from pipeline_errors import (
    AggregationError, ArchiveToolError, ExclusionRuleError, ExtractError,
    PackageError, PackageStructureError
)
from pipeline_monitoring import PipelineMonitor, StageMetrics


class TestStageMetrics:
    """Test StageMetrics computed properties"""

    def test_throughput(self):
        metrics = StageMetrics(stage_name='totals_artifacts', start_time=100.0, end_time=102.0,
                               items_processed=10, bytes_processed=4 * 1024 * 1024)
        assert metrics.duration == 2.0
        assert metrics.throughput_items_per_sec == 5.0
        assert metrics.throughput_mb_per_sec == 2.0

    def test_running_stage_duration(self):
        metrics = StageMetrics(stage_name='partials_build', start_time=time.time() - 1)
        assert metrics.duration >= 1


class TestPipelineMonitor:
    """Test stage tracking"""

    def test_stage_context_manager(self):
        monitor = PipelineMonitor()
        with monitor.stage('partials_build') as stage:
            stage.update_progress(items=2, bytes_count=100)
            stage.record_error(ValueError('bad package'))
            assert len(monitor.active_stages) == 1

        summary = monitor.get_stage_summary('partials_build')
        assert summary['runs'] == 1
        assert summary['total_items'] == 2
        assert summary['total_bytes'] == 100
        assert summary['total_errors'] == 1
        assert summary['error_types'] == {'ValueError': 1}
        assert summary['memory_peak'] > 0
        assert monitor.active_stages == []

    def test_exception_recorded_and_stage_closed(self):
        monitor = PipelineMonitor()
        with pytest.raises(RuntimeError):
            with monitor.stage('totals_trees'):
                raise RuntimeError('disk full')
        assert monitor.get_stage_summary('totals_trees')['total_errors'] == 1
        assert monitor.stage_metrics[0].finished

    def test_unknown_stage_summary_empty(self):
        assert PipelineMonitor().get_stage_summary('nothing') == {}

    def test_updates_to_closed_stage_ignored(self):
        monitor = PipelineMonitor()
        with monitor.stage('partials_cleanup') as stage:
            pass
        stage.update_progress(items=5)
        assert monitor.get_stage_summary('partials_cleanup')['total_items'] == 0

    def test_report_groups_runs_in_order(self, caplog):
        monitor = PipelineMonitor()
        for name in ('partials_cleanup', 'partials_build', 'partials_build'):
            with monitor.stage(name) as stage:
                stage.update_progress(items=1)

        report = monitor.report()
        assert list(report) == ['partials_cleanup', 'partials_build']
        assert report['partials_build']['runs'] == 2
        assert report['partials_build']['total_items'] == 2

        with caplog.at_level('INFO', logger='pipeline_monitoring'):
            monitor.log_report()
        assert 'Stage partials_build: 2 items' in caplog.text


class TestErrors:
    """Test error formatting and hierarchy"""

    def test_message_with_code_and_cause(self):
        error = ExtractError('Failed', cause=OSError('disk'), error_code='X')
        assert str(error) == '[X] Failed (caused by OSError: disk)'
        assert error.log_context()['error_type'] == 'ExtractError'

    def test_package_errors_share_base(self):
        assert issubclass(PackageStructureError, PackageError)
        assert issubclass(ArchiveToolError, PackageError)
        assert not issubclass(ExclusionRuleError, PackageError)
        assert not issubclass(AggregationError, PackageError)

    def test_archive_tool_error_keeps_stderr_tail(self):
        error = ArchiveToolError('tar failed', returncode=2, stderr='x' * 5000)
        assert error.returncode == 2
        assert len(error.details['stderr']) == 2000
        assert len(error.stderr) == 5000
