"""
Per-package partial builds.

A partial directory holds everything derived from one archive:

- ``files.txt`` and ``files<ext>.txt``: every member path
- ``slim.files.txt`` and ``slim.files<ext>.txt``: members surviving exclusion
- the package manifest
- ``slim.code<ext>.txt``: line-numbered dumps of slim members
- ``slim.ast<ext>.json``: tree dumps, when enabled

``files.txt`` is written last, atomically, so its presence marks a complete
build.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from base_classes import PartialResult
from parsers.registry import ParserRegistry
from pipeline.stages import streams
from pipeline.stages.archive import ArchiveLister
from pipeline.stages.code_dump import slim_code
from pipeline.stages.exclusions import ExclusionRules
from pipeline.stages.tree_dump import slim_ast
from pipeline_configs import ExtractConfig

logger = logging.getLogger(__name__)

LISTING_FILE = 'files.txt'
SLIM_LISTING_FILE = 'slim.files.txt'


def listing_name(ext: str = '', slim: bool = False) -> str:
    prefix = 'slim.files' if slim else 'files'
    return f"{prefix}{ext}.txt"


def code_dump_name(ext: str) -> str:
    return f"slim.code{ext}.txt"


def is_complete(partial_dir: Path) -> bool:
    return (Path(partial_dir) / LISTING_FILE).is_file()


class PartialBuilder:
    """Builds one package's partial artifact set"""

    def __init__(self, config: ExtractConfig, exclusions: ExclusionRules,
                 lister: Optional[ArchiveLister] = None,
                 registry: Optional[ParserRegistry] = None):
        self.config = config
        self.exclusions = exclusions
        self.lister = lister or ArchiveLister(max_output=config.list_buffer_limit)
        self.registry = registry

    def archive_path(self, package_id: str) -> Path:
        return self.config.current_dir / package_id

    def partial_dir(self, package_id: str) -> Path:
        return self.config.partials_dir / package_id

    def scratch_dir(self, package_id: str) -> Path:
        return self.config.tmp_dir / package_id

    async def _member_paths(self, package_id: str, outdir: Path, rebuild: bool) -> Tuple[List[str], bool]:
        listing = outdir / LISTING_FILE
        if rebuild and await streams.exists(listing):
            try:
                return await streams.read_lines(listing), True
            except OSError as e:
                # Fall back to listing the archive
                logger.warning(f"Cannot reuse {listing}: {e}")

        entries = await self.lister.list(self.archive_path(package_id))
        self.lister.validate_single_root(entries, package_id)
        return self.lister.member_paths(package_id, entries), False

    async def _write_listings(self, outdir: Path, paths: List[str], slim: bool) -> None:
        high_water = self.config.write_high_water
        if slim:
            await streams.write_lines(outdir / SLIM_LISTING_FILE, paths, high_water=high_water)
        for ext in self.config.extensions:
            await streams.write_lines(
                outdir / listing_name(ext, slim),
                [p for p in paths if p.endswith(ext)],
                high_water=high_water
            )

    def extract_patterns(self, slim: List[str]) -> List[str]:
        """Wildcards for the manifest plus every extension that has slim members"""
        patterns = [f"*/{self.config.manifest_name}"]
        for ext in self.config.extensions:
            if any(entry.endswith(ext) for entry in slim):
                patterns.append(f"*{ext}")
        return patterns

    async def build(self, package_id: str, rebuild: bool = False) -> PartialResult:
        config = self.config
        outdir = self.partial_dir(package_id)
        tmp = self.scratch_dir(package_id)
        await streams.mkdirp(outdir)

        files, reused = await self._member_paths(package_id, outdir, rebuild)
        # Per-extension listings always follow the current extension set
        await self._write_listings(outdir, files, slim=False)

        excluded = self.exclusions.load()
        slim = excluded.filter(files)
        await self._write_listings(outdir, slim, slim=True)

        result = PartialResult(
            package_id=package_id,
            files=len(files),
            slim_files=len(slim),
            listing_reused=reused
        )

        await streams.mkdirp(tmp)
        try:
            # A missing root manifest fails the extract, and with it the package
            await self.lister.extract(self.archive_path(package_id), tmp,
                                      self.extract_patterns(slim))
            await streams.copy_file(tmp / config.manifest_name,
                                    outdir / config.manifest_name,
                                    overwrite=False,
                                    high_water=config.write_high_water)

            # Slim entries are "<package_id>/<path>", so tmp_dir resolves them
            for ext in config.extensions:
                result.lines_dumped[ext] = await slim_code(
                    ext, outdir, config.tmp_dir, slim,
                    max_length=config.max_line_length,
                    high_water=config.write_high_water
                )

            for ext in config.extensions:
                if config.ast_enabled_for(ext):
                    result.trees_dumped[ext] = await slim_ast(
                        ext, outdir, config.tmp_dir, slim,
                        compress=config.compress,
                        registry=self.registry,
                        minified_density=config.minified_density,
                        high_water=config.write_high_water,
                        compression_level=config.compression_level
                    )

            await streams.write_lines(outdir / LISTING_FILE, files, atomic=True,
                                      high_water=config.write_high_water)
        finally:
            await streams.rmrf(tmp)

        logger.debug(f"Partial {package_id}: {result.files} files, {result.slim_files} slim")
        return result
