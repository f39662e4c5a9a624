"""
Drifters sync module.

Push, pull, diff and status over the shared repository.
"""

from drifters.sync.manager import (
    FileChange,
    FileState,
    SyncManager,
    SyncStatus,
    SyncSummary,
)

__all__ = ["FileChange", "FileState", "SyncManager", "SyncStatus", "SyncSummary"]
