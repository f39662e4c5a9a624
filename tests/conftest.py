"""
Pytest configuration and fixtures for drifters tests.
"""

import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def sample_config(temp_dir: Path) -> "DriftersConfig":
    """Create an initialized configuration rooted in a temp directory."""
    from drifters.core.config import DriftersConfig, LockConfig

    config = DriftersConfig(
        machine_id="laptop",
        repo_url=str(temp_dir / "remote.git"),
        config_directory=temp_dir / "config",
        lock=LockConfig(timeout_seconds=1, poll_interval_seconds=0.05),
    )
    config.logging.log_directory = temp_dir / "logs"
    config.logging.file_enabled = False
    config.ensure_directories()
    return config


@pytest.fixture
def bare_repo(temp_dir: Path) -> Path:
    """An empty bare git repository acting as the shared remote."""
    if shutil.which("git") is None:
        pytest.skip("git not available")

    path = temp_dir / "remote.git"
    subprocess.run(["git", "init", "--bare", str(path)], check=True, capture_output=True)
    return path


@pytest.fixture
def git_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's global configuration."""
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", "/dev/null")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
