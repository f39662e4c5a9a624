"""
End-to-end sync tests against a real bare git repository.

Two machines share one remote; each has its own config directory and fake
home. Commit times are pinned through GIT_COMMITTER_DATE so last-write-wins
is deterministic.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from drifters.cli.main import cli
from drifters.core.config import DriftersConfig, LockConfig
from drifters.core.errors import AppNotFoundError, BackingStoreError, MachineNotRegisteredError
from drifters.rules.machines import MachineRegistry
from drifters.rules.sync_rules import SyncRules
from drifters.store.checkout import WorkingCopy
from drifters.store.repo import GitStore
from drifters.sync.manager import SyncManager

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("git_env")]

START = "# drifters::exclude::start"
STOP = "# drifters::exclude::stop"


class Machine:
    """One simulated machine: config, home directory and manager."""

    def __init__(self, root: Path, machine_id: str, remote: Path, os_name: str = "linux") -> None:
        self.home = root / machine_id / "home"
        self.home.mkdir(parents=True)
        self.config_path = root / machine_id / "config" / "config.json"
        self.config = DriftersConfig(
            machine_id=machine_id,
            repo_url=str(remote),
            config_directory=root / machine_id / "config",
            lock=LockConfig(timeout_seconds=1, poll_interval_seconds=0.05),
        )
        self.config.logging.file_enabled = False
        self.manager = SyncManager(self.config, os_name=os_name)

    def activate(self, monkeypatch: pytest.MonkeyPatch, committed_at: int | None = None) -> SyncManager:
        monkeypatch.setenv("HOME", str(self.home))
        if committed_at is not None:
            monkeypatch.setenv("GIT_COMMITTER_DATE", f"{committed_at} +0000")
        return self.manager


@pytest.fixture
def laptop(temp_dir: Path, bare_repo: Path) -> Machine:
    return Machine(temp_dir, "laptop", bare_repo)


@pytest.fixture
def desktop(temp_dir: Path, bare_repo: Path) -> Machine:
    return Machine(temp_dir, "desktop", bare_repo)


def _remote_snapshot(bare_repo: Path, temp_dir: Path) -> GitStore:
    return GitStore.clone(str(bare_repo), temp_dir / "inspect")


class TestInitAndRules:
    """Tests for init, add and exclude."""

    def test_init_registers_machine(
        self, laptop: Machine, bare_repo: Path, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        assert laptop.activate(monkeypatch).init(laptop.config_path) is True

        assert laptop.config_path.exists()
        assert not laptop.config.checkout_path.exists()
        assert not laptop.config.lock_path.exists()

        snapshot = _remote_snapshot(bare_repo, temp_dir)
        registry = MachineRegistry.load(snapshot.path)
        assert registry.machines["laptop"].os == "linux"

    def test_add_app_merges_patterns(
        self, laptop: Machine, bare_repo: Path, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        manager = laptop.activate(monkeypatch)
        manager.init()
        assert manager.add_app("zsh", ["~/.zshrc"]) is True
        assert manager.add_app("zsh", ["~/.zshrc", "~/.zprofile"], ["*.bak"]) is True
        assert manager.add_app("zsh", ["~/.zshrc"]) is False

        rules = SyncRules.load(_remote_snapshot(bare_repo, temp_dir).path)
        assert rules.get_app("zsh").include == ["~/.zshrc", "~/.zprofile"]
        assert rules.get_app("zsh").exclude == ["*.bak"]

    def test_exclude_file_for_this_machine(
        self, laptop: Machine, bare_repo: Path, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        manager = laptop.activate(monkeypatch)
        manager.init()
        manager.add_app("zsh", ["~/.zshrc", "~/.zprofile"])

        assert manager.exclude_file("zsh", ".zprofile") is True
        assert manager.exclude_file("zsh", ".zprofile") is False

        rules = SyncRules.load(_remote_snapshot(bare_repo, temp_dir).path)
        assert rules.get_app("zsh").machines["laptop"].exclude == ["**/.zprofile"]

    def test_exclude_unknown_app(self, laptop: Machine, monkeypatch: pytest.MonkeyPatch) -> None:
        manager = laptop.activate(monkeypatch)
        manager.init()
        with pytest.raises(AppNotFoundError):
            manager.exclude_file("emacs", "init.el")
        assert not laptop.config.lock_path.exists()


class TestPushPull:
    """Two machines replicating one file."""

    def _setup(self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch) -> None:
        manager = laptop.activate(monkeypatch, committed_at=1700000000)
        manager.init()
        manager.add_app("bash", ["~/.bashrc"])
        desktop.activate(monkeypatch, committed_at=1700000000).init()

    def test_push_strips_exclude_bodies(
        self,
        laptop: Machine,
        desktop: Machine,
        bare_repo: Path,
        temp_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        (laptop.home / ".bashrc").write_text(f"alias ll='ls -l'\n{START}\nexport TOKEN=laptop\n{STOP}\n")

        status = laptop.activate(monkeypatch, committed_at=1700000100).push()

        assert status.committed is True
        assert status.summary.changed == 1
        snapshot = _remote_snapshot(bare_repo, temp_dir)
        stored = (snapshot.path / "apps" / "bash" / "machines" / "laptop" / ".bashrc").read_text()
        assert stored == f"alias ll='ls -l'\n{START}\n{STOP}\n"
        assert snapshot.commit_time_of(
            snapshot.path / "apps" / "bash" / "machines" / "laptop" / ".bashrc"
        ) == 1700000100

    def test_second_push_is_noop(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        (laptop.home / ".bashrc").write_text("alias ll='ls -l'\n")
        manager = laptop.activate(monkeypatch, committed_at=1700000100)
        manager.push()

        status = manager.push()
        assert status.committed is False
        assert status.summary.unchanged == 1

    def test_latest_push_wins_and_local_sections_survive(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        laptop_rc = laptop.home / ".bashrc"
        laptop_rc.write_text(f"alias ll='ls -l'\n{START}\nexport TOKEN=laptop\n{STOP}\n")
        laptop.activate(monkeypatch, committed_at=1700000100).push()

        (desktop.home / ".bashrc").write_text(
            f"alias ll='ls -la'\n{START}\nexport TOKEN=desktop\n{STOP}\nalias g=git\n"
        )
        desktop.activate(monkeypatch, committed_at=1700000200).push()

        status = laptop.activate(monkeypatch).pull()

        assert status.summary.changed == 1
        assert status.changes[0].sources == 2
        assert laptop_rc.read_text() == (
            f"alias ll='ls -la'\n{START}\nexport TOKEN=laptop\n{STOP}\nalias g=git\n"
        )

    def test_pull_into_file_never_pushed(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        (laptop.home / ".bashrc").write_text("export EDITOR=vim\n")
        laptop.activate(monkeypatch, committed_at=1700000100).push()

        desktop_rc = desktop.home / ".bashrc"
        desktop_rc.write_text("")
        status = desktop.activate(monkeypatch).pull()

        assert desktop_rc.read_text() == "export EDITOR=vim\n"
        assert status.changes[0].action == "updated"

    def test_dry_run_writes_nothing(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        (laptop.home / ".bashrc").write_text("new\n")
        laptop.activate(monkeypatch, committed_at=1700000100).push()
        desktop_rc = desktop.home / ".bashrc"
        desktop_rc.write_text("old\n")

        status = desktop.activate(monkeypatch).pull(dry_run=True)

        assert status.command == "diff"
        assert desktop_rc.read_text() == "old\n"
        assert "-old" in status.changes[0].diff
        assert "+new" in status.changes[0].diff

    def test_status_states(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        laptop_rc = laptop.home / ".bashrc"
        laptop_rc.write_text("one\n")
        manager = laptop.activate(monkeypatch, committed_at=1700000100)
        assert [s.state for s in manager.status()] == ["not pushed"]

        manager.push()
        assert [s.state for s in manager.status()] == ["up to date"]

        laptop_rc.write_text("two\n")
        assert [s.state for s in manager.status()] == ["local changes"]

        laptop_rc.write_text("one\n")
        (desktop.home / ".bashrc").write_text("three\n")
        desktop.activate(monkeypatch, committed_at=1700000200).push()
        assert [s.state for s in laptop.activate(monkeypatch).status()] == ["remote changes"]

    def test_filter_unknown_machine(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        with pytest.raises(MachineNotRegisteredError) as exc_info:
            laptop.activate(monkeypatch).pull(filter_machine="ghost")
        assert "desktop" in exc_info.value.remediation

    def test_truncated_file_is_not_pushed(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        self._setup(laptop, desktop, monkeypatch)
        laptop_rc = laptop.home / ".bashrc"
        laptop_rc.write_text("export PATH=$HOME/bin:$PATH\n" * 10)
        manager = laptop.activate(monkeypatch, committed_at=1700000100)
        manager.push()

        laptop_rc.write_text("")
        status = manager.push()
        assert status.summary.skipped == 1
        assert "--force" in status.changes[0].reason

        forced = manager.push(force=True)
        assert forced.committed is True

    def test_malformed_file_aborts_push(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from drifters.core.errors import MalformedContentError

        self._setup(laptop, desktop, monkeypatch)
        (laptop.home / ".bashrc").write_text(f"{START}\nsecret\n")

        with pytest.raises(MalformedContentError):
            laptop.activate(monkeypatch).push()
        assert not laptop.config.lock_path.exists()
        assert not laptop.config.checkout_path.exists()


class TestGitStore:
    """Tests for GitStore and WorkingCopy against a real remote."""

    def test_init_local_sets_remote(self, temp_dir: Path, bare_repo: Path) -> None:
        store = GitStore.init_local(temp_dir / "fresh", str(bare_repo))
        assert store.remote_url() == str(bare_repo)
        assert store.has_commits() is False

        (store.path / "README").write_text("hello\n")
        assert store.commit_and_push("Initial commit") is True
        assert store.commit_and_push("Nothing new") is False
        assert store.commit_time_of(store.path / "README") is not None
        assert store.commit_time_of(store.path / "missing") is None

    def test_clone_failure(self, temp_dir: Path) -> None:
        with pytest.raises(BackingStoreError) as exc_info:
            GitStore.clone(str(temp_dir / "does-not-exist.git"), temp_dir / "checkout")
        assert "does-not-exist.git" in str(exc_info.value)

    def test_kept_working_copy_is_refreshed(
        self, laptop: Machine, desktop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        laptop.activate(monkeypatch).init()

        with WorkingCopy(laptop.config, keep=True) as store:
            assert not MachineRegistry.load(store.path).is_registered("desktop")
        assert laptop.config.checkout_path.exists()
        assert not laptop.config.lock_path.exists()

        desktop.activate(monkeypatch).init()

        with WorkingCopy(laptop.config) as store:
            assert MachineRegistry.load(store.path).is_registered("desktop")
        assert not laptop.config.checkout_path.exists()


class TestUnlock:
    def test_unlock_removes_lock_and_checkout(
        self, laptop: Machine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        manager = laptop.activate(monkeypatch)
        laptop.config.lock_path.parent.mkdir(parents=True, exist_ok=True)
        laptop.config.lock_path.write_text("99999")
        laptop.config.checkout_path.mkdir()

        assert manager.lock_info().pid == 99999
        assert manager.unlock() is True
        assert manager.lock_info() is None
        assert not laptop.config.checkout_path.exists()


class TestCli:
    """Drive the click commands end to end."""

    def test_init_add_push_status(
        self, laptop: Machine, bare_repo: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        laptop.activate(monkeypatch, committed_at=1700000000)
        laptop.config.save(laptop.config_path)
        (laptop.home / ".gitconfig").write_text("[user]\n\tname = Me\n")
        runner = CliRunner()
        base = ["--config", str(laptop.config_path)]

        result = runner.invoke(cli, [*base, "init", str(bare_repo), "--machine-id", "laptop"], obj={})
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, [*base, "add", "git", "~/.gitconfig"], obj={})
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, [*base, "--json", "push"], obj={})
        assert result.exit_code == 0, result.output
        pushed = json.loads(result.stdout)
        assert pushed["committed"] is True
        assert pushed["changes"][0]["action"] == "pushed"

        result = runner.invoke(cli, [*base, "--json", "status"], obj={})
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)[0]["state"] == "up to date"
