"""
Drifters store module.

The git-backed repository, its on-disk layout, the ephemeral working copy
and the lock that serializes access to it.
"""

from drifters.store.checkout import WorkingCopy
from drifters.store.layout import StoreLayout, collect_machine_versions
from drifters.store.lock import LockInfo, LockState, WorkingCopyLock, force_unlock, read_lock_info
from drifters.store.repo import GitStore

__all__ = [
    "GitStore",
    "LockInfo",
    "LockState",
    "StoreLayout",
    "WorkingCopy",
    "WorkingCopyLock",
    "collect_machine_versions",
    "force_unlock",
    "read_lock_info",
]
