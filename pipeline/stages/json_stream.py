"""
Incremental JSON object writing.

``JsonObjectWriter`` emits one ``"key": value`` pair per line between an
opening and a closing brace, placing the separating commas itself. Callers
never see delimiters, and the object is never held in memory.

Because every pair sits on its own line, an object written this way can be
read back pair by pair with ``iter_encoded_pairs`` and spliced into another
writer without decoding the values.
"""

import json
from typing import Any, AsyncIterator, Optional

from pipeline.stages.streams import PackedWriter


class JsonObjectWriter:
    """Streams a JSON object into a ``PackedWriter``"""

    def __init__(self, out: PackedWriter):
        self.out = out
        self.count = 0
        self._started = False
        self._finished = False

    async def begin(self) -> None:
        if self._started:
            raise ValueError("JSON object already started")
        self._started = True
        await self.out.write('{')

    async def write_pair(self, key: str, value: Any) -> None:
        encoded = f"{json.dumps(key)}: {json.dumps(value, separators=(',', ':'))}"
        await self.write_encoded_pair(encoded)

    async def write_encoded_pair(self, encoded: str) -> None:
        """Add a pair that is already JSON text of the form ``"key": value``"""
        if not self._started or self._finished:
            raise ValueError("JSON object is not open for writing")
        if '\n' in encoded:
            raise ValueError("Encoded pair must fit on one line")
        separator = '\n ' if self.count == 0 else ',\n '
        await self.out.write(separator + encoded)
        self.count += 1

    async def finish(self) -> None:
        if not self._started:
            await self.begin()
        if self._finished:
            return
        self._finished = True
        await self.out.write('\n}\n')


def encoded_pair_from_line(line: str) -> Optional[str]:
    """Pair text carried by one line of a written object, or None for structure lines"""
    stripped = line.strip()
    if not stripped or stripped in ('{', '}'):
        return None
    if stripped.endswith(','):
        stripped = stripped[:-1]
    if stripped.startswith(','):
        stripped = stripped[1:].lstrip()
    return stripped or None


async def iter_encoded_pairs(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    async for line in lines:
        pair = encoded_pair_from_line(line)
        if pair is not None:
            yield pair
