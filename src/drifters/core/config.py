"""
Drifters configuration management.

Provides the per-machine local configuration with validation using Pydantic.
The shared sync rules live in the repository, see ``drifters.rules``.
"""

from __future__ import annotations

import json
import socket
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from drifters.core.errors import RepoNotInitializedError

DEFAULT_CONFIG_DIRECTORY = Path.home() / ".config" / "drifters"
CONFIG_FILENAME = "config.json"
CHECKOUT_DIRNAME = "tmp-repo"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file_enabled: bool = True
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: DEFAULT_CONFIG_DIRECTORY / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class LockConfig(BaseModel):
    """Configuration for the working-copy lock."""

    stale_after_seconds: float = Field(default=600, gt=0)
    timeout_seconds: float = Field(default=30, ge=0, le=3600)
    poll_interval_seconds: float = Field(default=0.5, gt=0, le=60)


class DriftersConfig(BaseModel):
    """Main drifters configuration for this machine."""

    machine_id: str = ""
    repo_url: str = ""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    config_directory: Path = Field(default_factory=lambda: DEFAULT_CONFIG_DIRECTORY)

    @field_validator("config_directory", mode="before")
    @classmethod
    def expand_config_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()

    @property
    def checkout_path(self) -> Path:
        """The shared ephemeral checkout of the sync repository."""
        return self.config_directory / CHECKOUT_DIRNAME

    @property
    def lock_path(self) -> Path:
        return self.checkout_path.with_suffix(".lock")

    @property
    def is_initialized(self) -> bool:
        return bool(self.machine_id and self.repo_url)

    @classmethod
    def load(cls, config_path: Path | None = None) -> DriftersConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_DIRECTORY / CONFIG_FILENAME

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = self.config_directory / CONFIG_FILENAME

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.config_directory.mkdir(parents=True, exist_ok=True)
        if self.logging.file_enabled:
            self.logging.log_directory.mkdir(parents=True, exist_ok=True)


def detect_machine_id() -> str:
    """Default machine id: the host name."""
    return socket.gethostname() or "unknown"


def load_config(config_path: Path | None = None, require_init: bool = True) -> DriftersConfig:
    """Load configuration, optionally requiring an initialized machine."""
    path = config_path or DEFAULT_CONFIG_DIRECTORY / CONFIG_FILENAME
    config = DriftersConfig.load(path)
    if require_init and not config.is_initialized:
        raise RepoNotInitializedError(path)
    config.ensure_directories()
    return config
