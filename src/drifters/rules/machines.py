"""
Registry of machines participating in a repository.
"""

from __future__ import annotations

import sys
import tomllib
from datetime import datetime, timezone
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

REGISTRY_RELATIVE_PATH = Path(".drifters") / "machines.toml"


class MachineInfo(BaseModel):
    os: str
    last_sync: datetime | None = None


class MachineRegistry(BaseModel):
    machines: dict[str, MachineInfo] = Field(default_factory=dict)

    @classmethod
    def load(cls, repo_path: Path) -> MachineRegistry:
        registry_path = repo_path / REGISTRY_RELATIVE_PATH
        if not registry_path.exists():
            return cls()

        with open(registry_path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    def save(self, repo_path: Path) -> Path:
        registry_path = repo_path / REGISTRY_RELATIVE_PATH
        registry_path.parent.mkdir(parents=True, exist_ok=True)
        # TOML has no null, so unsynced machines simply omit last_sync
        with open(registry_path, "wb") as f:
            tomli_w.dump(self.model_dump(exclude_none=True), f)
        return registry_path

    def register_machine(self, machine_id: str, os_name: str) -> None:
        self.machines[machine_id] = MachineInfo(
            os=os_name,
            last_sync=datetime.now(timezone.utc).replace(microsecond=0),
        )

    def is_registered(self, machine_id: str) -> bool:
        return machine_id in self.machines


def detect_os() -> str:
    """Name of the running OS as used in sync rules."""
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform
