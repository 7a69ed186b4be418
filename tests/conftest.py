"""
Pytest configuration and shared fixtures for snapcheck tests.

Fixtures defined here are available to all test modules without imports.

Fixtures:
- temp_dir: A temporary directory for snapshot files
- snap_path: A path to a (not yet existing) snapshot file
- write_snap_file: Writes a snapshot file from raw key/value pairs
- no_ci: Clears CI environment variables so recording is allowed
"""

import json
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from snapcheck.config import CI_ENV_VARS, UPDATE_ENV_VAR, SNAPSHOT_DIR_ENV_VAR
from snapcheck.snapfile import SCHEMA_VERSION


# =============================================================================
# PATH FIXTURES
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Provides a temporary directory for tests that need files.

    Yields:
        Path: Path to a temporary directory that is removed afterwards.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def snap_path(temp_dir: Path) -> Path:
    """
    Provides a snapshot file path inside a temporary directory.

    The file does not exist until something writes it.
    """
    return temp_dir / "snapshots" / "test_module.py.snap"


@pytest.fixture
def write_snap_file(snap_path: Path) -> Callable[[dict[str, str]], Path]:
    """
    Provides a helper that writes raw persisted pairs to snap_path.

    Example:
        def test_load(write_snap_file):
            path = write_snap_file({"t1//0": "A", "t1//1": "B"})
    """

    def write(pairs: dict[str, str]) -> Path:
        snap_path.parent.mkdir(parents=True, exist_ok=True)
        snap_path.write_text(
            json.dumps({"schema_version": SCHEMA_VERSION, "snapshots": pairs}),
            encoding="utf-8",
        )
        return snap_path

    return write


# =============================================================================
# ENVIRONMENT FIXTURES
# =============================================================================


@pytest.fixture
def no_ci(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Clears CI and snapcheck environment variables.

    Tests that run pytest in-process need this so recording is allowed even
    when the suite itself runs in CI.
    """
    for name in CI_ENV_VARS + (UPDATE_ENV_VAR, SNAPSHOT_DIR_ENV_VAR):
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# MARKER CONFIGURATION
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for the test suite."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that run pytest in-process via pytester",
    )
