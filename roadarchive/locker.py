"""
locker.py
Process-exclusivity guard for archive runs.

Device plug-in events can overlap, so acquisition is a single non-blocking
flock(2) attempt: a second run fails fast with LockBusy instead of queueing
behind the first. The lock file is removed on release so its absence means
no run is active.
"""

from __future__ import annotations
import fcntl, os
from pathlib import Path
from typing import Optional, TextIO

from .errors import LockBusy
from .logsetup import log

ACQUIRE_ATTEMPTS = 3


class RunLock:
    """
    File-backed exclusive lock.

    Usage as context manager:
        with RunLock(Path("/var/lock/road-test-archive.lock")):
            ...
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fh: Optional[TextIO] = None

    @property
    def held(self) -> bool:
        return self._fh is not None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def acquire(self) -> None:
        if self._fh is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(ACQUIRE_ATTEMPTS):
            fh = open(self.path, "a+")
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                fh.close()
                log.error("Another run is in progress (lock file: %s)", self.path)
                raise LockBusy(f"Another run is in progress (lock file: {self.path})")
            if self._is_current(fh):
                break
            # The previous holder unlinked the file between our open and flock;
            # the lock we hold is on an orphaned inode.
            fh.close()
            log.debug("Lock file %s was replaced while locking; retrying", self.path)
        else:
            raise LockBusy(f"Lock file {self.path} keeps changing; another run is starting")
        fh.seek(0)
        fh.truncate()
        fh.write(str(os.getpid()))
        fh.flush()
        self._fh = fh
        log.info("Lock acquired (lock file: %s)", self.path)

    def _is_current(self, fh: TextIO) -> bool:
        """True if fh still refers to the file at self.path."""
        try:
            on_disk = os.stat(self.path)
        except FileNotFoundError:
            return False
        held = os.fstat(fh.fileno())
        return (held.st_dev, held.st_ino) == (on_disk.st_dev, on_disk.st_ino)

    def release(self) -> None:
        """Unlock, close and remove the lock file. Calling it twice is harmless."""
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("Could not remove lock file %s: %s", self.path, e)
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()
        log.debug("Lock released (lock file: %s)", self.path)
