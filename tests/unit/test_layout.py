"""
Tests for drifters.store.layout module.
"""

from pathlib import Path

from drifters.core.models import MachineVersion
from drifters.store.layout import StoreLayout, collect_machine_versions


class FakeHistory:
    """Commit times keyed by machine directory name."""

    def __init__(self, times: dict[str, int]) -> None:
        self.times = times
        self.queried: list[Path] = []

    def commit_time_of(self, path: Path) -> int | None:
        self.queried.append(path)
        return self.times.get(path.parent.name)


def _write_copy(layout: StoreLayout, app: str, machine: str, filename: str, content: str) -> None:
    path = layout.machine_copy(app, machine, filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


class TestStoreLayout:
    def test_paths(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        assert layout.app_dir("zsh") == temp_dir / "apps" / "zsh"
        assert layout.machines_dir("zsh") == temp_dir / "apps" / "zsh" / "machines"
        assert layout.machine_copy("zsh", "laptop", ".zshrc") == (
            temp_dir / "apps" / "zsh" / "machines" / "laptop" / ".zshrc"
        )


class TestCollectMachineVersions:
    """Tests for collect_machine_versions."""

    def test_missing_machines_dir(self, temp_dir: Path) -> None:
        assert collect_machine_versions(temp_dir / "apps" / "zsh" / "machines", ".zshrc") == {}

    def test_collects_copies_with_commit_times(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "laptop", ".zshrc", "laptop\n")
        _write_copy(layout, "zsh", "desktop", ".zshrc", "desktop\n")
        history = FakeHistory({"laptop": 100, "desktop": 200})

        versions = collect_machine_versions(layout.machines_dir("zsh"), ".zshrc", store=history)

        assert versions == {
            "desktop": MachineVersion("desktop\n", 200),
            "laptop": MachineVersion("laptop\n", 100),
        }
        assert len(history.queried) == 2

    def test_without_history(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "laptop", ".zshrc", "x\n")

        versions = collect_machine_versions(layout.machines_dir("zsh"), ".zshrc")
        assert versions == {"laptop": MachineVersion("x\n", None)}

    def test_uncommitted_copy_has_no_timestamp(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "new-box", ".zshrc", "x\n")

        versions = collect_machine_versions(
            layout.machines_dir("zsh"), ".zshrc", store=FakeHistory({})
        )
        assert versions["new-box"].committed_at is None

    def test_skips_machines_without_the_file(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "laptop", ".zshrc", "x\n")
        _write_copy(layout, "zsh", "desktop", ".zprofile", "y\n")

        versions = collect_machine_versions(layout.machines_dir("zsh"), ".zshrc")
        assert list(versions) == ["laptop"]

    def test_ignores_stray_files(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "laptop", ".zshrc", "x\n")
        (layout.machines_dir("zsh") / ".DS_Store").write_text("junk")

        assert list(collect_machine_versions(layout.machines_dir("zsh"), ".zshrc")) == ["laptop"]

    def test_filter_machine(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "laptop", ".zshrc", "x\n")
        _write_copy(layout, "zsh", "desktop", ".zshrc", "y\n")

        versions = collect_machine_versions(
            layout.machines_dir("zsh"), ".zshrc", filter_machine="desktop"
        )
        assert versions == {"desktop": MachineVersion("y\n", None)}

    def test_filter_unknown_machine(self, temp_dir: Path) -> None:
        layout = StoreLayout(temp_dir)
        _write_copy(layout, "zsh", "laptop", ".zshrc", "x\n")

        assert collect_machine_versions(layout.machines_dir("zsh"), ".zshrc", "nope") == {}
