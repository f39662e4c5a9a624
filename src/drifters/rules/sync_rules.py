"""
Shared sync rules stored in the repository.

``.drifters/sync-rules.toml`` maps app names to their include/exclude
patterns. Patterns apply additively: app defaults, then the OS-specific
lists, then the per-machine override.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from drifters.core.errors import AppNotFoundError

RULES_RELATIVE_PATH = Path(".drifters") / "sync-rules.toml"


class MachineOverride(BaseModel):
    """Extra patterns for one machine."""

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


class AppDefinition(BaseModel):
    """Sync rules for one app."""

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    include_macos: list[str] = Field(default_factory=list)
    exclude_macos: list[str] = Field(default_factory=list)
    include_linux: list[str] = Field(default_factory=list)
    exclude_linux: list[str] = Field(default_factory=list)
    include_windows: list[str] = Field(default_factory=list)
    exclude_windows: list[str] = Field(default_factory=list)
    machines: dict[str, MachineOverride] = Field(default_factory=dict)

    def os_patterns(self, os_name: str) -> tuple[list[str], list[str]] | None:
        """Return the (include, exclude) lists for an OS, None if unknown."""
        if os_name not in ("macos", "linux", "windows"):
            return None
        return getattr(self, f"include_{os_name}"), getattr(self, f"exclude_{os_name}")

    def machine_override(self, machine_id: str) -> MachineOverride | None:
        return self.machines.get(machine_id)


class SyncRules(BaseModel):
    """All app definitions of a repository."""

    apps: dict[str, AppDefinition] = Field(default_factory=dict)

    @classmethod
    def load(cls, repo_path: Path) -> SyncRules:
        """Load rules from a checkout; a missing file yields no apps."""
        rules_path = repo_path / RULES_RELATIVE_PATH
        if not rules_path.exists():
            return cls()

        with open(rules_path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    def save(self, repo_path: Path) -> Path:
        rules_path = repo_path / RULES_RELATIVE_PATH
        rules_path.parent.mkdir(parents=True, exist_ok=True)
        with open(rules_path, "wb") as f:
            tomli_w.dump(self.model_dump(mode="json"), f)
        return rules_path

    def get_app(self, app_name: str) -> AppDefinition:
        try:
            return self.apps[app_name]
        except KeyError:
            raise AppNotFoundError(app_name) from None

    def select_apps(self, app_name: str | None = None) -> list[str]:
        """App names a command operates on, sorted for stable output."""
        if app_name is None:
            return sorted(self.apps)
        self.get_app(app_name)
        return [app_name]

    def add_app(self, app_name: str, definition: AppDefinition) -> None:
        self.apps[app_name] = definition
