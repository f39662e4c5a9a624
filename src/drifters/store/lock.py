"""
Working-copy lock.

Every drifters command reads and writes through one shared checkout, so
independently launched processes (manual commands, an auto-sync hook)
serialize on a lock file next to it. The file holds the owner's PID and
its mtime is the acquisition time. A lock older than the staleness
threshold is treated as abandoned by a crashed owner and reclaimed.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Any

import psutil

from drifters.core.config import LockConfig
from drifters.core.errors import LockTimeoutError
from drifters.core.logging import get_logger

logger = get_logger(__name__)


class LockState(Enum):
    """Lock lifecycle states."""

    UNLOCKED = auto()
    ACQUIRING = auto()
    HELD = auto()


@dataclass
class LockInfo:
    """Snapshot of an existing lock file."""

    path: Path
    pid: int | None
    age_seconds: float

    @property
    def holder_alive(self) -> bool | None:
        if self.pid is None:
            return None
        return psutil.pid_exists(self.pid)


def read_lock_info(lock_path: Path) -> LockInfo | None:
    """Inspect a lock file, None if there is none."""
    try:
        stat = lock_path.stat()
        raw = lock_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None

    pid = int(raw) if raw.isdigit() else None
    return LockInfo(path=lock_path, pid=pid, age_seconds=max(0.0, time.time() - stat.st_mtime))


def force_unlock(lock_path: Path) -> bool:
    """Remove a lock file regardless of its owner. Returns False if absent."""
    try:
        lock_path.unlink()
    except FileNotFoundError:
        return False
    logger.warning("Lock file removed manually", path=str(lock_path))
    return True


class WorkingCopyLock:
    """Exclusive, cross-process ownership of the shared checkout.

    Use as a context manager so the lock spans the whole command::

        with WorkingCopyLock(config.lock_path, config.lock):
            ...
    """

    def __init__(
        self,
        lock_path: Path,
        config: LockConfig | None = None,
        on_wait: Callable[[LockInfo | None], None] | None = None,
    ) -> None:
        self.lock_path = Path(lock_path)
        self.config = config or LockConfig()
        self.on_wait = on_wait
        self.state = LockState.UNLOCKED

    @property
    def is_held(self) -> bool:
        return self.state == LockState.HELD

    def inspect(self) -> LockInfo | None:
        return read_lock_info(self.lock_path)

    def acquire(self) -> None:
        """Block until the lock is held or the timeout elapses.

        Raises:
            LockTimeoutError: another process kept the lock past the timeout.
        """
        self.state = LockState.ACQUIRING
        deadline = time.monotonic() + self.config.timeout_seconds
        notified = False

        try:
            while True:
                if self._try_create():
                    break

                if self._remove_if_stale() and self._try_create():
                    break

                if time.monotonic() >= deadline:
                    raise LockTimeoutError(self.lock_path, self.config.timeout_seconds)

                if not notified:
                    info = read_lock_info(self.lock_path)
                    logger.warning(
                        "Waiting for another drifters process",
                        path=str(self.lock_path),
                        holder_pid=info.pid if info else None,
                    )
                    if self.on_wait is not None:
                        self.on_wait(info)
                    notified = True

                time.sleep(self.config.poll_interval_seconds)
        except BaseException:
            self.state = LockState.UNLOCKED
            raise

        self.state = LockState.HELD
        logger.debug("Lock acquired", path=str(self.lock_path), pid=os.getpid())

    def release(self) -> None:
        """Remove the lock file. Failures are logged, never raised."""
        if self.state != LockState.HELD:
            return
        self.state = LockState.UNLOCKED
        try:
            self.lock_path.unlink()
        except OSError as e:
            logger.warning("Failed to remove lock file", path=str(self.lock_path), error=str(e))
        else:
            logger.debug("Lock released", path=str(self.lock_path))

    def __enter__(self) -> WorkingCopyLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.release()

    def _try_create(self) -> bool:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        return True

    def _remove_if_stale(self) -> bool:
        try:
            observed = self.lock_path.stat()
        except FileNotFoundError:
            # Released between our create attempt and this check
            return True
        age_seconds = time.time() - observed.st_mtime
        if age_seconds <= self.config.stale_after_seconds:
            return False

        info = read_lock_info(self.lock_path)
        logger.warning(
            "Removing stale lock",
            path=str(self.lock_path),
            holder_pid=info.pid if info else None,
            age_seconds=round(age_seconds),
        )

        # Another process may have reclaimed the stale lock since the stat
        # above; only remove the exact file that was judged stale.
        try:
            current = self.lock_path.stat()
        except FileNotFoundError:
            return True
        if (current.st_ino, current.st_mtime_ns) != (observed.st_ino, observed.st_mtime_ns):
            logger.debug("Stale lock was reclaimed by another process", path=str(self.lock_path))
            return False

        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            pass
        return True
