"""
Syntax tree dumps.

``get_ast`` classifies a source file as minified, parsed or unparsed;
``slim_ast`` writes one JSON object per package mapping member path to the
tree or sentinel, streaming pair by pair.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import aiofiles

from base_classes import TreeDump
from parsers.registry import ParserRegistry, get_parser_registry
from pipeline.stages.json_stream import JsonObjectWriter
from pipeline.stages.streams import PackedWriter, packed_path

logger = logging.getLogger(__name__)

DEFAULT_MINIFIED_DENSITY = 200.0


def tree_file_name(ext: str) -> str:
    return f"slim.ast{ext}.json"


def get_ast(code: str, ext: str, registry: Optional[ParserRegistry] = None,
            minified_density: float = DEFAULT_MINIFIED_DENSITY) -> TreeDump:
    density = len(code) / len(code.split('\n'))
    if density > minified_density:
        # Probably a minified file; parsing it is slow and useless
        return TreeDump.minified()

    parser = (registry or get_parser_registry()).get_parser_for_extension(ext)
    if parser is None:
        return TreeDump.unparsed()
    # Parser errors of any kind mean "try the next source type"
    for source_type, parse in (('script', parser.parse_script), ('module', parser.parse_module)):
        try:
            return TreeDump.parsed(parse(code))
        except Exception as e:
            logger.debug(f"Parsing as {source_type} failed: {e}")
    return TreeDump.unparsed()


async def slim_ast(ext: str, outdir: Path, scratch_root: Path, slim: Sequence[str],
                   compress: bool = False, registry: Optional[ParserRegistry] = None,
                   minified_density: float = DEFAULT_MINIFIED_DENSITY,
                   high_water: int = 64 * 1024, compression_level: int = 0) -> int:
    """Write the per-package tree dump for one extension; returns entries written"""
    outfile = packed_path(Path(outdir) / tree_file_name(ext), compress)
    entries = [entry for entry in slim if entry.endswith(ext)]
    async with PackedWriter(outfile, compress=compress, high_water=high_water,
                            compression_level=compression_level) as out:
        writer = JsonObjectWriter(out)
        await writer.begin()
        for entry in entries:
            async with aiofiles.open(Path(scratch_root) / entry, 'r',
                                     encoding='utf-8', errors='replace', newline='') as f:
                code = await f.read()
            tree = get_ast(code, ext, registry, minified_density)
            await writer.write_pair(entry, tree.to_json_value())
        await writer.finish()
    logger.debug(f"Wrote {len(entries)} {ext} trees to {outfile}")
    return len(entries)
