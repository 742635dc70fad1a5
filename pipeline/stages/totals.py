"""
Corpus totals aggregation.

Totals are rebuilt from scratch on every run. Plain artifacts are the byte
concatenation of every partial's copy, in sorted package order; tree dumps
are merged into one JSON object per extension keyed by member path.
"""

import logging
from typing import Dict, List, Optional

from base_classes import TotalsSummary
from pipeline.stages import streams
from pipeline.stages.json_stream import JsonObjectWriter, iter_encoded_pairs
from pipeline.stages.partial import LISTING_FILE, SLIM_LISTING_FILE, code_dump_name, listing_name
from pipeline.stages.streams import PackedWriter, StreamCopier, packed_path
from pipeline.stages.tree_dump import tree_file_name
from pipeline_configs import ExtractConfig
from pipeline_errors import AggregationError
from pipeline_monitoring import PipelineMonitor

logger = logging.getLogger(__name__)

PACKAGES_FILE = 'packages.txt'


def artifact_names(extensions: List[str]) -> List[str]:
    """Plain per-package artifacts that are concatenated into totals"""
    names = [LISTING_FILE, SLIM_LISTING_FILE]
    for ext in extensions:
        names.append(listing_name(ext))
        names.append(listing_name(ext, slim=True))
        names.append(code_dump_name(ext))
    return names


class AggregationEngine:
    """Merges all partials into corpus-wide totals"""

    def __init__(self, config: ExtractConfig, monitor: Optional[PipelineMonitor] = None):
        self.config = config
        self.monitor = monitor or PipelineMonitor()
        self.copier = StreamCopier(config.read_chunk_size)

    def _writer(self, name: str) -> PackedWriter:
        config = self.config
        return PackedWriter(
            packed_path(config.out_dir / name, config.compress),
            compress=config.compress,
            high_water=config.write_high_water,
            compression_level=config.compression_level
        )

    async def _write_packages(self) -> int:
        logger.info('Totals: building packages list...')
        current = sorted(await streams.listdir(self.config.current_dir))
        await streams.write_lines(self.config.out_dir / PACKAGES_FILE, current,
                                  high_water=self.config.write_high_water)
        logger.info(f"Totals: {PACKAGES_FILE} complete, {len(current)} packages.")
        return len(current)

    async def _close_all(self, writers: Dict[str, PackedWriter]) -> None:
        for writer in writers.values():
            await writer.close()

    async def _aggregate_artifacts(self, available: List[str]) -> List[str]:
        config = self.config
        names = artifact_names(config.extensions)
        writers = {name: self._writer(name) for name in names}
        interval = config.progress_interval

        with self.monitor.stage('totals_artifacts') as stage:
            try:
                for writer in writers.values():
                    await writer.open()

                for built, package_id in enumerate(available, 1):
                    partial_dir = config.partials_dir / package_id
                    for name in names:
                        try:
                            copied = await self.copier.copy_file(partial_dir / name, writers[name])
                        except OSError as e:
                            raise AggregationError(f"Cannot aggregate {name}",
                                                   artifact=name, package_id=package_id, cause=e)
                        stage.update_progress(bytes_count=copied)
                    stage.update_progress(items=1)
                    if built % interval == 0:
                        logger.info(f"Totals: building {built} / {len(available)}...")

                for writer in writers.values():
                    if config.compress and writer.bytes_written == 0:
                        # Keep every compressed total a non-empty stream
                        await writer.write('\n')
            finally:
                await self._close_all(writers)

        logger.info(f"Totals: processed {len(available)} partials.")
        return [writer.path.name for writer in writers.values()]

    async def _aggregate_trees(self, available: List[str]) -> Dict[str, int]:
        config = self.config
        logger.info('Totals: building AST...')
        exts = [ext for ext in config.extensions if config.ast_enabled_for(ext)]
        names = {ext: tree_file_name(ext) for ext in exts}
        writers = {ext: self._writer(names[ext]) for ext in exts}
        objects: Dict[str, JsonObjectWriter] = {}
        interval = config.progress_interval

        with self.monitor.stage('totals_trees') as stage:
            try:
                for ext, writer in writers.items():
                    await writer.open()
                    objects[ext] = JsonObjectWriter(writer)
                    await objects[ext].begin()

                for built, package_id in enumerate(available, 1):
                    partial_dir = config.partials_dir / package_id
                    for ext in exts:
                        source = packed_path(partial_dir / names[ext], config.compress)
                        lines = streams.iter_lines(source, config.compress, config.read_chunk_size)
                        try:
                            async for pair in iter_encoded_pairs(lines):
                                await objects[ext].write_encoded_pair(pair)
                        except OSError as e:
                            raise AggregationError(f"Cannot merge {source.name}",
                                                   artifact=source.name, package_id=package_id,
                                                   cause=e)
                    stage.update_progress(items=1)
                    if built % interval == 0:
                        logger.info(f"Totals: AST {built} / {len(available)}...")

                for obj in objects.values():
                    await obj.finish()
            finally:
                await self._close_all(writers)

        return {ext: objects[ext].count for ext in exts}

    async def totals(self) -> TotalsSummary:
        config = self.config
        summary = TotalsSummary()
        try:
            logger.info('Totals: cleaning up...')
            await streams.rmrf(config.out_dir)
            await streams.mkdirp(config.out_dir)

            summary.packages = await self._write_packages()

            logger.info('Totals: processing partials...')
            available = []
            if await streams.exists(config.partials_dir):
                available = sorted(await streams.listdir(config.partials_dir))
            summary.partials = len(available)
            logger.info(f"Totals: found {len(available)} partials.")

            summary.artifacts = await self._aggregate_artifacts(available)
            if config.features_ast:
                summary.tree_entries = await self._aggregate_trees(available)
        except AggregationError:
            raise
        except Exception as e:
            raise AggregationError('Totals rebuild failed', cause=e) from e

        logger.info('Totals: done!')
        return summary
