"""Tests for snapshot path resolution."""

from pathlib import Path

from snapcheck.paths import determine_snapshot_dir, determine_snapshot_paths


PROJECT = Path("/project")


class TestSnapshotDir:
    """Tests for determine_snapshot_dir()."""

    def test_dunder_tests_dir(self) -> None:
        """Verify tests under __tests__ use __snapshots__."""
        file = PROJECT / "pkg" / "__tests__" / "test_a.py"
        assert determine_snapshot_dir(file, PROJECT) == PROJECT / "pkg" / "__tests__" / "__snapshots__"

    def test_tests_dir(self) -> None:
        """Verify tests under tests/ use snapshots/."""
        file = PROJECT / "tests" / "unit" / "test_a.py"
        assert determine_snapshot_dir(file, PROJECT) == PROJECT / "tests" / "unit" / "snapshots"

    def test_test_dir(self) -> None:
        """Verify tests under test/ use snapshots/."""
        file = PROJECT / "test" / "test_a.py"
        assert determine_snapshot_dir(file, PROJECT) == PROJECT / "test" / "snapshots"

    def test_other_dir(self) -> None:
        """Verify other tests keep snapshots beside them."""
        file = PROJECT / "src" / "test_a.py"
        assert determine_snapshot_dir(file, PROJECT) == PROJECT / "src"

    def test_fixed_location(self) -> None:
        """Verify a fixed location mirrors the project layout."""
        file = PROJECT / "tests" / "unit" / "test_a.py"
        fixed = Path("/snaps")
        assert determine_snapshot_dir(file, PROJECT, fixed) == fixed / "tests" / "unit"


class TestSnapshotPaths:
    """Tests for determine_snapshot_paths()."""

    def test_paths(self) -> None:
        """Verify all resolved paths."""
        paths = determine_snapshot_paths("/project/tests/test_a.py", "/project")

        assert paths.dir == PROJECT / "tests" / "snapshots"
        assert paths.rel_file == Path("tests/test_a.py")
        assert paths.snap_file == "test_a.py.snap"
        assert paths.snap_path == PROJECT / "tests" / "snapshots" / "test_a.py.snap"
