"""
Drifters sync manager.

Sequences the core pieces into commands: every command holds the
working-copy lock, refreshes the checkout, resolves each app's fileset
for this machine, then pushes local copies or merges the replicas back.
"""

from __future__ import annotations

import difflib
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from drifters.core.config import DriftersConfig
from drifters.core.errors import ConfigurationError, MachineNotRegisteredError
from drifters.core.logging import OperationLogger, get_logger
from drifters.core.safety import check_push_safety
from drifters.merge.consensus import merge_versions
from drifters.parser.comments import detect_comment_syntax
from drifters.parser.sections import extract_syncable, merge_local
from drifters.rules.fileset import resolve_fileset
from drifters.rules.machines import MachineRegistry, detect_os
from drifters.rules.sync_rules import AppDefinition, MachineOverride, SyncRules
from drifters.store.checkout import WorkingCopy
from drifters.store.layout import StoreLayout, collect_machine_versions
from drifters.store.lock import LockInfo, force_unlock, read_lock_info
from drifters.store.repo import GitStore

logger = get_logger(__name__)

# Per-file problems that are reported and skipped; anything else aborts
# the command (malformed exclude tags, lock timeouts, git failures).
PER_FILE_ERRORS = (OSError, UnicodeDecodeError, ConfigurationError)


@dataclass
class FileChange:
    app: str
    path: Path
    action: str  # pushed, updated, created, unchanged, skipped
    sources: int = 0
    diff: str = ""
    reason: str = ""


@dataclass
class SyncSummary:
    changed: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class SyncStatus:
    command: str
    machine_id: str
    started_at: datetime
    dry_run: bool = False
    ended_at: datetime | None = None
    committed: bool = False
    summary: SyncSummary = field(default_factory=SyncSummary)
    changes: list[FileChange] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def record(self, change: FileChange) -> None:
        self.changes.append(change)
        if change.action == "unchanged":
            self.summary.unchanged += 1
        elif change.action == "skipped":
            self.summary.skipped += 1
        else:
            self.summary.changed += 1

    def record_error(self, app: str, path: Path, exc: BaseException) -> None:
        message = f"{app}: {path}: {exc}"
        logger.warning("Skipping file after error", app=app, path=str(path), error=str(exc))
        self.errors.append(message)
        self.summary.errors += 1

    def to_dict(self) -> dict[str, object]:
        return {
            "command": self.command,
            "machine_id": self.machine_id,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "committed": self.committed,
            "summary": {
                "changed": self.summary.changed,
                "unchanged": self.summary.unchanged,
                "skipped": self.summary.skipped,
                "errors": self.summary.errors,
            },
            "changes": [
                {
                    "app": change.app,
                    "path": str(change.path),
                    "action": change.action,
                    "sources": change.sources,
                    "reason": change.reason,
                }
                for change in self.changes
            ],
            "warnings": self.warnings,
            "errors": self.errors,
        }


@dataclass
class FileState:
    app: str
    path: Path
    state: str  # up to date, local changes, remote changes, not pushed


class SyncManager:
    """Runs drifters commands for the configured machine."""

    def __init__(
        self,
        config: DriftersConfig,
        os_name: str | None = None,
        on_wait: Callable[[LockInfo | None], None] | None = None,
    ) -> None:
        self.config = config
        self.os_name = os_name or detect_os()
        self.on_wait = on_wait

    @property
    def machine_id(self) -> str:
        return self.config.machine_id

    def working_copy(self) -> WorkingCopy:
        return WorkingCopy(self.config, on_wait=self.on_wait)

    def init(self, config_path: Path | None = None) -> bool:
        """Clone the repository, register this machine and save the config."""
        with OperationLogger("init", logger, machine_id=self.machine_id):
            with self.working_copy() as store:
                registry = MachineRegistry.load(store.path)
                registry.register_machine(self.machine_id, self.os_name)
                registry.save(store.path)
                committed = store.commit_and_push(f"Register machine {self.machine_id}")

            self.config.save(config_path)
        return committed

    def add_app(self, app_name: str, include: list[str], exclude: list[str] | None = None) -> bool:
        """Create an app or append patterns to an existing one."""
        with OperationLogger("add", logger, app=app_name):
            with self.working_copy() as store:
                rules = SyncRules.load(store.path)
                app = rules.apps.get(app_name) or AppDefinition()
                app.include.extend(p for p in include if p not in app.include)
                app.exclude.extend(p for p in exclude or [] if p not in app.exclude)
                rules.add_app(app_name, app)
                rules.save(store.path)
                return store.commit_and_push(f"Update {app_name} rules")

    def exclude_file(self, app_name: str, filename: str) -> bool:
        """Stop syncing ``filename`` of an app on this machine only.

        Returns False when the file was already excluded.
        """
        pattern = f"**/{filename}"
        with OperationLogger("exclude", logger, app=app_name, filename=filename):
            with self.working_copy() as store:
                rules = SyncRules.load(store.path)
                app = rules.get_app(app_name)
                override = app.machines.setdefault(self.machine_id, MachineOverride())
                if pattern in override.exclude:
                    return False
                override.exclude.append(pattern)
                rules.save(store.path)
                store.commit_and_push(f"Exclude {filename} from {app_name} on {self.machine_id}")
                return True

    def push(self, app_name: str | None = None, force: bool = False) -> SyncStatus:
        """Copy this machine's files into the repository and push them."""
        status = SyncStatus(command="push", machine_id=self.machine_id, started_at=datetime.now())

        with OperationLogger("push", logger, app=app_name, force=force):
            with self.working_copy() as store:
                layout = StoreLayout(store.path)
                rules = SyncRules.load(store.path)
                apps = rules.select_apps(app_name)

                for name in apps:
                    fileset = resolve_fileset(rules.apps[name], self.machine_id, self.os_name)
                    for path in fileset:
                        try:
                            status.record(self._push_file(layout, name, path, force))
                        except PER_FILE_ERRORS as e:
                            status.record_error(name, path, e)

                registry = MachineRegistry.load(store.path)
                if status.summary.changed or not registry.is_registered(self.machine_id):
                    registry.register_machine(self.machine_id, self.os_name)
                    registry.save(store.path)

                if status.summary.changed:
                    if len(apps) == 1:
                        message = f"Update {apps[0]} configs from {self.machine_id}"
                    else:
                        message = f"Update configs from {self.machine_id}"
                    status.committed = store.commit_and_push(message)

        status.ended_at = datetime.now()
        return status

    def pull(
        self,
        app_name: str | None = None,
        filter_machine: str | None = None,
        filter_os: str | None = None,
        dry_run: bool = False,
    ) -> SyncStatus:
        """Merge every machine's copy and apply the result locally.

        With ``dry_run`` nothing is written; the changes carry diffs.
        """
        status = SyncStatus(
            command="diff" if dry_run else "pull",
            machine_id=self.machine_id,
            started_at=datetime.now(),
            dry_run=dry_run,
        )
        os_name = filter_os or self.os_name

        with OperationLogger(status.command, logger, app=app_name, machine=filter_machine):
            with self.working_copy() as store:
                registry = self._check_registration(store, status)
                if filter_machine is not None and not registry.is_registered(filter_machine):
                    raise MachineNotRegisteredError(filter_machine, sorted(registry.machines))
                layout = StoreLayout(store.path)
                rules = SyncRules.load(store.path)

                for name in rules.select_apps(app_name):
                    fileset = resolve_fileset(rules.apps[name], self.machine_id, os_name)
                    for path in fileset:
                        try:
                            change = self._pull_file(
                                store, layout, name, path, filter_machine, dry_run
                            )
                        except PER_FILE_ERRORS as e:
                            status.record_error(name, path, e)
                            continue
                        if change is not None:
                            status.record(change)

        status.ended_at = datetime.now()
        return status

    def status(self, app_name: str | None = None) -> list[FileState]:
        """Compare local files with this machine's copy and the merge result."""
        states: list[FileState] = []

        with OperationLogger("status", logger, app=app_name):
            with self.working_copy() as store:
                layout = StoreLayout(store.path)
                rules = SyncRules.load(store.path)

                for name in rules.select_apps(app_name):
                    fileset = resolve_fileset(rules.apps[name], self.machine_id, self.os_name)
                    for path in fileset:
                        try:
                            state = self._file_state(store, layout, name, path)
                        except PER_FILE_ERRORS as e:
                            logger.warning("Cannot determine status", path=str(path), error=str(e))
                            state = "unreadable"
                        states.append(FileState(app=name, path=path, state=state))

        return states

    def lock_info(self) -> LockInfo | None:
        return read_lock_info(self.config.lock_path)

    def unlock(self) -> bool:
        """Remove the lock and any checkout an interrupted command left behind."""
        removed = force_unlock(self.config.lock_path)
        if self.config.checkout_path.exists():
            shutil.rmtree(self.config.checkout_path)
            logger.info("Removed leftover checkout", path=str(self.config.checkout_path))
        return removed

    def _push_file(self, layout: StoreLayout, app_name: str, path: Path, force: bool) -> FileChange:
        if not path.is_file():
            return FileChange(app_name, path, "skipped", reason="not a regular file")

        destination = layout.machine_copy(app_name, self.machine_id, path.name)

        if not force:
            report = check_push_safety(path, destination)
            if not report.all_passed:
                reason = "; ".join(check.message for check in report.failures())
                return FileChange(app_name, path, "skipped", reason=f"{reason} (use --force)")

        content = path.read_text(encoding="utf-8")
        syncable = extract_syncable(content, detect_comment_syntax(path.name))
        to_write = content if syncable is None else syncable

        if destination.is_file() and destination.read_text(encoding="utf-8") == to_write:
            return FileChange(app_name, path, "unchanged")

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(to_write, encoding="utf-8")
        logger.debug("Wrote machine copy", app=app_name, path=str(destination))
        return FileChange(app_name, path, "pushed")

    def _pull_file(
        self,
        store: GitStore,
        layout: StoreLayout,
        app_name: str,
        path: Path,
        filter_machine: str | None,
        dry_run: bool,
    ) -> FileChange | None:
        versions = collect_machine_versions(
            layout.machines_dir(app_name), path.name, filter_machine, store
        )
        if not versions:
            logger.debug("No pushed copies", app=app_name, filename=path.name)
            return None

        merged = merge_versions(versions, self.machine_id)
        local = path.read_text(encoding="utf-8") if path.exists() else None
        final = merged if local is None else merge_local(local, merged, detect_comment_syntax(path.name))

        if local == final:
            return FileChange(app_name, path, "unchanged", sources=len(versions))

        diff = "".join(
            difflib.unified_diff(
                (local or "").splitlines(keepends=True),
                final.splitlines(keepends=True),
                fromfile=f"{path} (local)",
                tofile=f"{path} (merged)",
            )
        )

        if not dry_run:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(final, encoding="utf-8")
            logger.info("Applied merged content", app=app_name, path=str(path))

        action = "created" if local is None else "updated"
        return FileChange(app_name, path, action, sources=len(versions), diff=diff)

    def _file_state(self, store: GitStore, layout: StoreLayout, app_name: str, path: Path) -> str:
        own_copy = layout.machine_copy(app_name, self.machine_id, path.name)
        if not own_copy.is_file():
            return "not pushed"

        local = path.read_text(encoding="utf-8")
        comment = detect_comment_syntax(path.name)
        syncable = extract_syncable(local, comment)
        if own_copy.read_text(encoding="utf-8") != (local if syncable is None else syncable):
            return "local changes"

        versions = collect_machine_versions(layout.machines_dir(app_name), path.name, store=store)
        merged = merge_versions(versions, self.machine_id)
        if merge_local(local, merged, comment) != local:
            return "remote changes"
        return "up to date"

    def _check_registration(self, store: GitStore, status: SyncStatus) -> MachineRegistry:
        registry = MachineRegistry.load(store.path)
        if registry.is_registered(self.machine_id):
            return registry
        message = (
            f"Machine '{self.machine_id}' is not registered in this repository; "
            "it may have been renamed or removed from another machine"
        )
        logger.warning("Machine not registered", machine_id=self.machine_id)
        status.warnings.append(message)
        return registry
