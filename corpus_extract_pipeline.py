"""
Corpus Extract Pipeline
=======================

Builds a searchable, storage-bounded extract of a large collection of
package archives:

    current/<id>.tgz  ->  partials/<id>/  ->  out/

Partials are built one package at a time; totals are rebuilt from all
partials on every run.
"""

import logging
from typing import Any, Dict, Optional, Union

from base_classes import BatchSummary, BuildMode, TotalsSummary
from parsers.registry import ParserRegistry
from pipeline.stages.archive import ArchiveLister
from pipeline.stages.exclusions import ExclusionRules
from pipeline.stages.partial import PartialBuilder
from pipeline.stages.totals import AggregationEngine
from pipeline.workers.partials import PartialsOrchestrator
from pipeline_configs import ExtractConfig
from pipeline_monitoring import PipelineMonitor

logger = logging.getLogger(__name__)


class CorpusExtractPipeline:
    """Entry points for building partials and totals under one root"""

    def __init__(self, config: Optional[ExtractConfig] = None,
                 lister: Optional[ArchiveLister] = None,
                 registry: Optional[ParserRegistry] = None):
        self.config = config or ExtractConfig()
        self.monitor = PipelineMonitor()
        # Rules load once and are shared by every build in this pipeline
        self.exclusions = ExclusionRules(self.config.rules_file)
        self.builder = PartialBuilder(self.config, self.exclusions,
                                      lister=lister, registry=registry)
        self.orchestrator = PartialsOrchestrator(self.config, self.builder,
                                                 self.exclusions, self.monitor)
        self.aggregator = AggregationEngine(self.config, self.monitor)

    async def partials(self, mode: Union[BuildMode, str, None] = None,
                       single: Optional[str] = None) -> BatchSummary:
        """Build missing partials, or rebuild all of them with ``mode='rebuild'``"""
        summary = await self.orchestrator.run(mode, single)
        logger.info(f"Partials summary: {summary}")
        return summary

    async def build_missing(self) -> BatchSummary:
        return await self.partials(BuildMode.MISSING)

    async def rebuild_all(self) -> BatchSummary:
        return await self.partials(BuildMode.REBUILD)

    async def build_single(self, package_id: str, rebuild: bool = False) -> BatchSummary:
        mode = BuildMode.REBUILD if rebuild else BuildMode.MISSING
        return await self.partials(mode, single=package_id)

    async def totals(self) -> TotalsSummary:
        summary = await self.aggregator.totals()
        logger.info(f"Totals summary: {summary.packages} packages, "
                    f"{summary.partials} partials, {len(summary.artifacts)} artifacts")
        return summary

    async def run(self) -> TotalsSummary:
        await self.partials()
        summary = await self.totals()
        self.monitor.log_report()
        return summary

    def get_performance_report(self) -> Dict[str, Dict[str, Any]]:
        return self.monitor.report()
