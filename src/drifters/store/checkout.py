"""
Ephemeral working copy of the sync repository.

The checkout is cloned (or refreshed) when a command starts and removed
when it ends. The working-copy lock is held for the whole interval so no
other process sees staged-but-unpushed state.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any

from drifters.core.config import DriftersConfig
from drifters.core.logging import get_logger
from drifters.store.lock import LockInfo, WorkingCopyLock
from drifters.store.repo import GitStore

logger = get_logger(__name__)


class WorkingCopy:
    """Context manager yielding a locked, up-to-date :class:`GitStore`."""

    def __init__(
        self,
        config: DriftersConfig,
        keep: bool = False,
        on_wait: Callable[[LockInfo | None], None] | None = None,
    ) -> None:
        self.config = config
        self.keep = keep
        self.lock = WorkingCopyLock(config.lock_path, config.lock, on_wait=on_wait)
        self.store: GitStore | None = None

    @property
    def path(self) -> Path:
        return self.config.checkout_path

    def __enter__(self) -> GitStore:
        self.lock.acquire()
        try:
            self.store = self._materialize()
        except BaseException:
            self._cleanup()
            self.lock.release()
            raise
        return self.store

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        try:
            self._cleanup()
        finally:
            self.lock.release()

    def _materialize(self) -> GitStore:
        if (self.path / ".git").is_dir():
            logger.debug("Checkout exists, pulling latest", path=str(self.path))
            store = GitStore(self.path)
            store.pull()
            return store

        if self.path.exists():
            # Leftover from an interrupted command that never finished cloning
            shutil.rmtree(self.path)

        return GitStore.clone(self.config.repo_url, self.path)

    def _cleanup(self) -> None:
        if self.keep or not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
        except OSError as e:
            logger.warning("Failed to clean up checkout", path=str(self.path), error=str(e))
        else:
            logger.debug("Removed checkout", path=str(self.path))
