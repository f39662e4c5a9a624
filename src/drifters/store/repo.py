"""
Git-backed durable store.

All git operations use :func:`subprocess.run` against the system ``git``,
which already carries the user's SSH and credential setup.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from drifters.core.errors import BackingStoreError
from drifters.core.logging import get_logger

logger = get_logger(__name__)

FALLBACK_USER_NAME = "Drifters User"
FALLBACK_USER_EMAIL = "drifters@localhost"


def _run_git(
    *args: str,
    cwd: Path | None = None,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and return the result without checking it."""
    logger.debug("Running git", args=" ".join(args), cwd=str(cwd) if cwd else None)
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
    )


class GitStore:
    """A local checkout of the shared sync repository."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def clone(cls, url: str, path: Path) -> GitStore:
        """Clone ``url`` into ``path``."""
        logger.info("Cloning repository", url=url, path=str(path))
        path.parent.mkdir(parents=True, exist_ok=True)

        result = _run_git("clone", url, str(path))
        if result.returncode != 0:
            raise BackingStoreError("clone repository", url, result.stderr)
        return cls(path)

    @classmethod
    def init_local(cls, path: Path, remote_url: str | None = None) -> GitStore:
        """Create a new repository, optionally pointing ``origin`` at a remote."""
        path.mkdir(parents=True, exist_ok=True)
        result = _run_git("init", cwd=path)
        if result.returncode != 0:
            raise BackingStoreError("initialize repository", remote_url, result.stderr)

        store = cls(path)
        if remote_url:
            result = _run_git("remote", "add", "origin", remote_url, cwd=path)
            if result.returncode != 0:
                raise BackingStoreError("add remote", remote_url, result.stderr)
        return store

    def remote_url(self) -> str | None:
        result = _run_git("remote", "get-url", "origin", cwd=self.path)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def has_commits(self) -> bool:
        result = _run_git("rev-parse", "--verify", "--quiet", "HEAD", cwd=self.path)
        return result.returncode == 0

    def pull(self) -> None:
        """Rebase the checkout onto the remote branch."""
        if not self.has_commits():
            # A freshly cloned empty repository has nothing to pull yet
            logger.debug("Repository has no commits, skipping pull", path=str(self.path))
            return

        result = _run_git("pull", "--rebase", cwd=self.path)
        if result.returncode != 0:
            raise BackingStoreError("pull latest changes", self.remote_url(), result.stderr)
        logger.info("Pulled latest changes", path=str(self.path))

    def commit_and_push(self, message: str) -> bool:
        """Stage everything, commit and push.

        Returns False when there was nothing to commit.
        """
        result = _run_git("add", "--all", cwd=self.path)
        if result.returncode != 0:
            raise BackingStoreError("stage changes", self.remote_url(), result.stderr)

        staged = _run_git("diff", "--cached", "--quiet", cwd=self.path)
        if staged.returncode == 0:
            logger.info("Nothing to commit", path=str(self.path))
            return False

        result = _run_git(*self._identity_args(), "commit", "-m", message, cwd=self.path)
        if result.returncode != 0:
            raise BackingStoreError("commit changes", self.remote_url(), result.stderr)
        logger.debug("Created commit", message=message)

        result = _run_git("push", "-u", "origin", "HEAD", cwd=self.path)
        if result.returncode != 0:
            raise BackingStoreError("push to remote", self.remote_url(), result.stderr)

        logger.info("Pushed to remote", message=message)
        return True

    def commit_time_of(self, path: Path) -> int | None:
        """Unix time of the latest commit touching ``path``, None without history."""
        try:
            relative = Path(path).resolve().relative_to(self.path.resolve())
        except ValueError:
            relative = Path(path)

        result = _run_git("log", "-1", "--format=%ct", "--", relative.as_posix(), cwd=self.path)
        output = result.stdout.strip()
        if result.returncode != 0 or not output:
            return None
        try:
            return int(output)
        except ValueError:
            logger.warning("Unexpected commit time", path=str(relative), output=output)
            return None

    def _identity_args(self) -> list[str]:
        args: list[str] = []
        if not _run_git("config", "user.name", cwd=self.path).stdout.strip():
            args += ["-c", f"user.name={FALLBACK_USER_NAME}"]
        if not _run_git("config", "user.email", cwd=self.path).stdout.strip():
            args += ["-c", f"user.email={FALLBACK_USER_EMAIL}"]
        return args
