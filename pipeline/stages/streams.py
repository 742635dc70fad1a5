"""
Flow-controlled streaming I/O.

Writers buffer up to a high-water mark and then block the caller until the
buffer has been drained to disk, so memory stays bounded no matter how large
a dump or aggregate grows. Readers are pull-based async iterators: a copy
loop only asks for the next chunk once the previous write has returned,
which pauses the producer while the consumer is full.

With compression enabled every byte goes through a streaming LZ4 frame
codec on its way to or from disk.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import AsyncIterator, Iterable, Union

import aiofiles
import aiofiles.os
import lz4.frame

logger = logging.getLogger(__name__)

DEFAULT_HIGH_WATER = 64 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024
COMPRESSED_SUFFIX = '.lz4'


def packed_path(path: Path, compress: bool) -> Path:
    """On-disk name of an artifact, with the compression suffix when enabled"""
    path = Path(path)
    if compress:
        return path.with_name(path.name + COMPRESSED_SUFFIX)
    return path


class PackedWriter:
    """Buffered async file writer with optional LZ4 framing.

    ``write()`` returns only once the writer has room again: when the buffer
    reaches ``high_water`` bytes it is flushed to disk before the call
    completes.
    """

    def __init__(self, path: Path, compress: bool = False,
                 high_water: int = DEFAULT_HIGH_WATER, compression_level: int = 0):
        if high_water <= 0:
            raise ValueError("high_water must be positive")
        self.path = Path(path)
        self.compress = compress
        self.high_water = high_water
        self.compression_level = compression_level
        self.bytes_written = 0  # uncompressed bytes accepted from callers
        self.drains = 0
        self._buffer = bytearray()
        self._file = None
        self._compressor = None
        self._closed = False

    async def open(self) -> 'PackedWriter':
        self._file = await aiofiles.open(self.path, 'wb')
        if self.compress:
            self._compressor = lz4.frame.LZ4FrameCompressor(
                compression_level=self.compression_level
            )
            self._buffer += self._compressor.begin()
        return self

    @property
    def needs_drain(self) -> bool:
        return len(self._buffer) >= self.high_water

    async def write(self, data: Union[str, bytes]) -> None:
        if self._file is None or self._closed:
            raise ValueError(f"Writer for {self.path} is not open")
        if isinstance(data, str):
            data = data.encode('utf-8')
        if not data:
            return
        self.bytes_written += len(data)
        if self._compressor is not None:
            data = self._compressor.compress(data)
        self._buffer += data
        if self.needs_drain:
            await self.drain()

    async def drain(self) -> None:
        if self._buffer:
            await self._file.write(bytes(self._buffer))
            self._buffer.clear()
            self.drains += 1

    async def close(self) -> None:
        if self._closed or self._file is None:
            return
        try:
            if self._compressor is not None:
                self._buffer += self._compressor.flush()
            await self.drain()
        finally:
            self._closed = True
            await self._file.close()

    async def __aenter__(self) -> 'PackedWriter':
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


async def iter_chunks(path: Path, compress: bool = False,
                      chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield the (decompressed) contents of a file chunk by chunk"""
    async with aiofiles.open(path, 'rb') as f:
        decompressor = lz4.frame.LZ4FrameDecompressor() if compress else None
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            if decompressor is None:
                yield chunk
                continue
            while chunk:
                data = decompressor.decompress(chunk)
                if data:
                    yield data
                if not decompressor.eof:
                    break
                # Concatenated frames
                chunk = decompressor.unused_data
                decompressor = lz4.frame.LZ4FrameDecompressor()


async def iter_lines(path: Path, compress: bool = False,
                     chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[str]:
    """Yield lines of a file without their terminators"""
    pending = b''
    async for chunk in iter_chunks(path, compress, chunk_size):
        pending += chunk
        *lines, pending = pending.split(b'\n')
        for line in lines:
            yield line.rstrip(b'\r').decode('utf-8', errors='replace')
    if pending:
        yield pending.rstrip(b'\r').decode('utf-8', errors='replace')


class StreamCopier:
    """Copies a chunk producer into a writer under flow control"""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def copy(self, source: AsyncIterator[bytes], sink: PackedWriter) -> int:
        copied = 0
        async for chunk in source:
            # Next chunk is pulled only after the sink has accepted this one
            await sink.write(chunk)
            copied += len(chunk)
        return copied

    async def copy_file(self, path: Path, sink: PackedWriter, compress: bool = False) -> int:
        return await self.copy(iter_chunks(path, compress, self.chunk_size), sink)


# Filesystem helpers

async def mkdirp(path: Path) -> None:
    await aiofiles.os.makedirs(path, exist_ok=True)


async def rmrf(path: Path) -> None:
    await asyncio.to_thread(shutil.rmtree, path, True)


async def listdir(path: Path) -> list:
    return await aiofiles.os.listdir(path)


async def exists(path: Path) -> bool:
    return await aiofiles.os.path.exists(path)


async def read_lines(path: Path) -> list:
    """Entries of a listing file, blank lines dropped"""
    lines = []
    async for line in iter_lines(path):
        if line:
            lines.append(line)
    return lines


async def write_lines(path: Path, lines: Iterable[str], atomic: bool = False,
                      high_water: int = DEFAULT_HIGH_WATER) -> None:
    """Write newline-terminated entries; with ``atomic`` the file appears only when complete"""
    path = Path(path)
    target = path.with_name(path.name + '.part') if atomic else path
    async with PackedWriter(target, high_water=high_water) as out:
        for line in lines:
            await out.write(f"{line}\n")
    if atomic:
        await aiofiles.os.replace(target, path)


async def copy_file(source: Path, dest: Path, overwrite: bool = True,
                    high_water: int = DEFAULT_HIGH_WATER) -> bool:
    """Copy one file under flow control; returns False when skipped"""
    if not overwrite and await exists(dest):
        return False
    async with PackedWriter(dest, high_water=high_water) as out:
        await StreamCopier().copy_file(source, out)
    return True
