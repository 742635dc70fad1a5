"""
Line-numbered source dumps.

Each surviving line of each slim member is written as
``<member path>:<line number>:<line>`` into one per-extension dump file.
"""

import logging
from pathlib import Path
from typing import Sequence

import aiofiles

from pipeline.stages.streams import PackedWriter

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_LENGTH = 500


def keep_line(line: str, max_length: int = DEFAULT_MAX_LINE_LENGTH) -> bool:
    """Drop overlong lines (minified or blob content) and whitespace-only lines"""
    return len(line) <= max_length and bool(line.strip())


async def dump_file(entry: str, source: Path, out: PackedWriter,
                    max_length: int = DEFAULT_MAX_LINE_LENGTH) -> int:
    """Stream one extracted file into the dump; returns lines written"""
    written = 0
    async with aiofiles.open(source, 'r', encoding='utf-8', errors='replace') as f:
        number = 0
        async for line in f:
            number += 1
            line = line.rstrip('\n')
            if not keep_line(line, max_length):
                continue
            await out.write(f"{entry}:{number}:{line}\n")
            written += 1
    return written


async def slim_code(ext: str, outdir: Path, scratch_root: Path, slim: Sequence[str],
                    max_length: int = DEFAULT_MAX_LINE_LENGTH,
                    high_water: int = 64 * 1024) -> int:
    """Write ``slim.code<ext>.txt`` for every slim entry with the extension"""
    outfile = Path(outdir) / f"slim.code{ext}.txt"
    entries = [entry for entry in slim if entry.endswith(ext)]
    total = 0
    async with PackedWriter(outfile, high_water=high_water) as out:
        for entry in entries:
            total += await dump_file(entry, Path(scratch_root) / entry, out, max_length)
    logger.debug(f"Dumped {total} lines from {len(entries)} {ext} files to {outfile}")
    return total
