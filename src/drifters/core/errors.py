"""
Drifters error hierarchy.

Every error carries an optional remediation hint that the CLI prints
underneath the message.
"""

from __future__ import annotations

from pathlib import Path


class DriftersError(Exception):
    """Base class for all drifters errors."""

    remediation: str | None = None

    def __init__(self, message: str, remediation: str | None = None) -> None:
        super().__init__(message)
        if remediation is not None:
            self.remediation = remediation


class ConfigurationError(DriftersError):
    """Invalid or missing configuration."""


class RepoNotInitializedError(ConfigurationError):
    remediation = "Run 'drifters init <repo-url>' first."

    def __init__(self, config_path: Path) -> None:
        super().__init__(f"Repository not initialized (no config at {config_path})")
        self.config_path = config_path


class AppNotFoundError(ConfigurationError):
    remediation = "Use 'drifters add <app> <pattern>' to register it."

    def __init__(self, app_name: str) -> None:
        super().__init__(f"App not found: {app_name}")
        self.app_name = app_name


class MachineNotRegisteredError(ConfigurationError):
    def __init__(self, machine_id: str, known_machines: list[str] | None = None) -> None:
        known = ", ".join(known_machines or []) or "none"
        super().__init__(
            f"Machine not registered: {machine_id}",
            remediation=f"Registered machines: {known}",
        )
        self.machine_id = machine_id


class EmptyVersionSetError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("No versions available to merge")


class MalformedContentError(DriftersError):
    """Content that cannot be split into synced and local-only sections."""

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        remediation: str | None = None,
    ) -> None:
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message, remediation)
        self.line_number = line_number


class LockTimeoutError(DriftersError):
    def __init__(self, lock_path: Path, timeout_seconds: float) -> None:
        super().__init__(
            f"Timed out after {timeout_seconds:g}s waiting for lock {lock_path}",
            remediation=(
                "Another drifters command may still be running. If you are sure no "
                f"other process is running, delete {lock_path} or run 'drifters unlock'."
            ),
        )
        self.lock_path = lock_path
        self.timeout_seconds = timeout_seconds


class BackingStoreError(DriftersError):
    """A git clone, pull, commit or push failed."""

    def __init__(self, action: str, remote_url: str | None, stderr: str) -> None:
        message = f"Failed to {action}"
        if remote_url:
            message += f"\nRepository URL: {remote_url}"
        if stderr:
            message += f"\nError: {stderr.strip()}"
        super().__init__(
            message,
            remediation="Check the repository URL and your git credentials.",
        )
        self.action = action
        self.remote_url = remote_url
        self.stderr = stderr
