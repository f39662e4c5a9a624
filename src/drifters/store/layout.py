"""
On-disk layout of the sync repository and replica collection.

Each machine's pushed copy of a file lives at
``apps/<app>/machines/<machine-id>/<filename>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from drifters.core.logging import get_logger
from drifters.core.models import MachineVersion

logger = get_logger(__name__)


class CommitHistory(Protocol):
    def commit_time_of(self, path: Path) -> int | None: ...


@dataclass(frozen=True)
class StoreLayout:
    root: Path

    def app_dir(self, app_name: str) -> Path:
        return self.root / "apps" / app_name

    def machines_dir(self, app_name: str) -> Path:
        return self.app_dir(app_name) / "machines"

    def machine_dir(self, app_name: str, machine_id: str) -> Path:
        return self.machines_dir(app_name) / machine_id

    def machine_copy(self, app_name: str, machine_id: str, filename: str) -> Path:
        return self.machine_dir(app_name, machine_id) / filename


def collect_machine_versions(
    machines_dir: Path,
    filename: str,
    filter_machine: str | None = None,
    store: CommitHistory | None = None,
) -> dict[str, MachineVersion]:
    """Read every machine's copy of ``filename`` with its commit time.

    A missing ``machines_dir`` yields an empty map. Copies without commit
    history are recorded with ``committed_at=None``.
    """
    versions: dict[str, MachineVersion] = {}
    if not machines_dir.is_dir():
        return versions

    for machine_dir in sorted(machines_dir.iterdir()):
        if not machine_dir.is_dir():
            continue

        machine_id = machine_dir.name
        if filter_machine is not None and machine_id != filter_machine:
            continue

        copy_path = machine_dir / filename
        if not copy_path.is_file():
            continue

        content = copy_path.read_text(encoding="utf-8")
        committed_at = store.commit_time_of(copy_path) if store is not None else None
        if committed_at is None:
            logger.debug("No commit history for copy", machine_id=machine_id, filename=filename)

        versions[machine_id] = MachineVersion(content=content, committed_at=committed_at)

    return versions
