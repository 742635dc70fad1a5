"""
Run Lock
========

Exclusive lock file that keeps two pipeline runs off the same root. The
lock records the owner's pid; a lock whose owner is gone counts as stale
and is taken over.
"""

import logging
import os
import time
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)


class FileLock:
    """Process-level exclusive lock backed by a file"""

    def __init__(self, lockfile: Path, timeout: float = 0.0):
        self.lockfile = Path(lockfile)
        self.timeout = timeout
        self.lock_acquired = False

    def acquire(self, blocking: bool = True) -> bool:
        """Acquire the file lock"""
        start = time.time()
        while True:
            try:
                fd = os.open(str(self.lockfile), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._is_stale_lock():
                    self._remove_stale_lock()
                    continue
                if not blocking or time.time() - start >= self.timeout:
                    return False
                time.sleep(0.1)
                continue
            with os.fdopen(fd, 'w') as f:
                f.write(str(os.getpid()))
            self.lock_acquired = True
            return True

    def release(self):
        """Release the file lock"""
        if not self.lock_acquired:
            return
        try:
            self.lockfile.unlink()
        except FileNotFoundError:
            pass
        self.lock_acquired = False

    def owner(self) -> int:
        try:
            return int(self.lockfile.read_text().strip() or 0)
        except (OSError, ValueError):
            return 0

    def _is_stale_lock(self) -> bool:
        pid = self.owner()
        return pid > 0 and not psutil.pid_exists(pid)

    def _remove_stale_lock(self):
        try:
            self.lockfile.unlink()
            logger.info(f"Removed stale lock file: {self.lockfile}")
        except FileNotFoundError:
            pass

    def __enter__(self):
        if not self.acquire():
            raise TimeoutError(f"Could not acquire lock on {self.lockfile} "
                               f"(held by pid {self.owner()})")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
