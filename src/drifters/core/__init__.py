"""
Drifters Core - shared configuration, errors, logging and models.
"""

from drifters.core.config import DriftersConfig, LockConfig, LoggingConfig, load_config
from drifters.core.errors import (
    AppNotFoundError,
    BackingStoreError,
    ConfigurationError,
    DriftersError,
    EmptyVersionSetError,
    LockTimeoutError,
    MachineNotRegisteredError,
    MalformedContentError,
    RepoNotInitializedError,
)
from drifters.core.logging import get_logger, setup_logging
from drifters.core.models import LocalOnlySpan, MachineVersion, SyncedSpan

__all__ = [
    "AppNotFoundError",
    "BackingStoreError",
    "ConfigurationError",
    "DriftersConfig",
    "DriftersError",
    "EmptyVersionSetError",
    "LocalOnlySpan",
    "LockConfig",
    "LockTimeoutError",
    "LoggingConfig",
    "MachineNotRegisteredError",
    "MachineVersion",
    "MalformedContentError",
    "RepoNotInitializedError",
    "SyncedSpan",
    "get_logger",
    "load_config",
    "setup_logging",
]
