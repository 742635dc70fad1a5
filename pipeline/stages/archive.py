"""
Archive listing and selective extraction through the system ``tar``.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Sequence

from pipeline_errors import ArchiveToolError, PackageStructureError

logger = logging.getLogger(__name__)

TAR = 'tar'
PACKAGE_MARKER = 'package'
_LEADING_COMPONENT_RE = re.compile(r'[^/]*/')


class ArchiveLister:
    """Lists, validates and extracts archive members via an external tar"""

    def __init__(self, tar_command: str = TAR, max_output: int = 50 * 1024 * 1024):
        if max_output <= 0:
            raise ValueError("max_output must be positive")
        self.tar_command = tar_command
        self.max_output = max_output

    async def _run(self, args: Sequence[str], cwd: Path = None, capture: bool = False) -> bytes:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.tar_command, *args,
                cwd=str(cwd) if cwd is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE if capture else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ArchiveToolError(f"Cannot start {self.tar_command}", cause=e)

        stderr_task = asyncio.ensure_future(proc.stderr.read())
        output = bytearray()
        try:
            if capture:
                while True:
                    chunk = await proc.stdout.read(64 * 1024)
                    if not chunk:
                        break
                    output += chunk
                    if len(output) > self.max_output:
                        proc.kill()
                        await proc.wait()
                        raise ArchiveToolError(
                            f"{self.tar_command} output exceeded {self.max_output} bytes"
                        )
            returncode = await proc.wait()
        finally:
            stderr = (await stderr_task).decode('utf-8', errors='replace')

        if returncode != 0:
            raise ArchiveToolError(
                f"{self.tar_command} {' '.join(args)} exited with {returncode}",
                returncode=returncode,
                stderr=stderr
            )
        return bytes(output)

    async def list(self, archive: Path) -> List[str]:
        """Sorted member paths of an archive"""
        stdout = await self._run(
            ['--list', '--warning=no-unknown-keyword', '-f', str(archive)],
            capture=True
        )
        entries = stdout.decode('utf-8', errors='replace').split('\n')
        return sorted(e for e in entries if e and e != PACKAGE_MARKER)

    @staticmethod
    def validate_single_root(entries: Sequence[str], archive: str = '') -> None:
        for entry in entries:
            if '/' not in entry:
                raise PackageStructureError(archive, entry)

    @staticmethod
    def member_paths(package_id: str, entries: Sequence[str]) -> List[str]:
        """Strip the wrapper directory and namespace entries under the package id"""
        return [f"{package_id}/{_LEADING_COMPONENT_RE.sub('', entry, count=1)}"
                for entry in entries]

    async def extract(self, archive: Path, dest: Path, patterns: Sequence[str]) -> None:
        """Extract members matching wildcard patterns into dest, dropping the wrapper directory"""
        args = [
            '--strip-components=1',
            '--warning=no-unknown-keyword',
            '-xf', str(Path(archive).resolve()),
            '--wildcards',
            *patterns
        ]
        await self._run(args, cwd=dest)
        logger.debug(f"Extracted {list(patterns)} from {archive}")
