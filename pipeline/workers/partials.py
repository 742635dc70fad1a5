"""
Partials Orchestrator
=====================

Drives the partial builder over the current archive set, one package at a
time. A package that fails is discarded and counted; the batch carries on.
"""

import logging
from typing import Optional, Union

from base_classes import BatchSummary, BuildMode
from pipeline.stages import streams
from pipeline.stages.exclusions import ExclusionRules
from pipeline.stages.partial import PartialBuilder, is_complete
from pipeline_configs import ExtractConfig
from pipeline_errors import ExclusionRuleError
from pipeline_monitoring import PipelineMonitor

logger = logging.getLogger(__name__)


def parse_mode(mode: Union[BuildMode, str, None]) -> BuildMode:
    if mode is None:
        return BuildMode.MISSING
    if isinstance(mode, BuildMode):
        return mode
    try:
        return BuildMode(mode)
    except ValueError:
        raise ValueError(f"Partials: unexpected command: {mode}") from None


class PartialsOrchestrator:
    """Builds and garbage-collects partials for the whole archive set.

    Not safe to run twice against the same root at once: the scratch root is
    shared. Callers serialize runs (the CLI holds a lock file).
    """

    def __init__(self, config: ExtractConfig, builder: Optional[PartialBuilder] = None,
                 exclusions: Optional[ExclusionRules] = None,
                 monitor: Optional[PipelineMonitor] = None):
        self.config = config
        self.exclusions = exclusions or ExclusionRules(config.rules_file)
        self.builder = builder or PartialBuilder(config, self.exclusions)
        self.monitor = monitor or PipelineMonitor()

    async def _remove_stale(self, current: set, present: list,
                            single: Optional[str], summary: BatchSummary) -> None:
        interval = self.config.progress_interval
        with self.monitor.stage('partials_cleanup') as stage:
            for package_id in present:
                if single and package_id != single:
                    continue
                if package_id in current:
                    continue
                await streams.rmrf(self.config.partials_dir / package_id)
                summary.removed += 1
                stage.update_progress(items=1)
                if summary.removed % interval == 0:
                    logger.info(f"Partials: removing {summary.removed}...")
        logger.info(f"Partials: removed {summary.removed}.")

    async def _discard(self, package_id: str) -> None:
        await streams.rmrf(self.config.partials_dir / package_id)
        await streams.rmrf(self.config.tmp_dir / package_id)

    async def run(self, mode: Union[BuildMode, str, None] = None,
                  single: Optional[str] = None) -> BatchSummary:
        mode = parse_mode(mode)
        rebuild = mode is BuildMode.REBUILD
        config = self.config
        summary = BatchSummary()

        await streams.mkdirp(config.partials_dir)
        logger.info('Reading packages directory...')
        current = sorted(await streams.listdir(config.current_dir))
        logger.info('Reading partials directory...')
        present = sorted(await streams.listdir(config.partials_dir))
        current_set = set(current)

        await self._remove_stale(current_set, present, single, summary)

        # Fail before touching any package if the rules are unusable
        self.exclusions.load()

        await streams.rmrf(config.tmp_dir)
        await streams.mkdirp(config.tmp_dir)

        todo = [package_id for package_id in current if not single or package_id == single]
        interval = config.progress_interval
        try:
            with self.monitor.stage('partials_build') as stage:
                for package_id in todo:
                    if not rebuild and is_complete(config.partials_dir / package_id):
                        summary.skipped += 1
                        continue
                    logger.info(f"Partial: building {package_id}")
                    try:
                        await self.builder.build(package_id, rebuild)
                    except ExclusionRuleError:
                        await self._discard(package_id)
                        raise
                    except Exception as e:
                        logger.error(f"Partial: failed {package_id}: {e}")
                        summary.errors += 1
                        summary.failed.append(package_id)
                        stage.record_error(e)
                        await self._discard(package_id)
                        continue
                    summary.built += 1
                    stage.update_progress(items=1)
                    if summary.built % interval == 0:
                        pending = len(todo) - summary.skipped - summary.errors
                        logger.info(f"Partials: building {summary.built} / {pending}...")
        finally:
            await streams.rmrf(config.tmp_dir)

        logger.info(f"Partials: built {summary.built}, errors: {summary.errors}.")
        return summary
