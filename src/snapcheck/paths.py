"""
Snapshot file location for a test module.

Rules, first match wins:

1. A fixed location is configured: mirror the test's directory (relative to
   the project) under it.
2. The test lives under a ``__tests__`` directory: ``__snapshots__`` beside it.
3. The test lives under ``test`` or ``tests``: ``snapshots`` beside it.
4. Otherwise: the test's own directory.

The file itself is named after the test file, e.g. ``test_render.py.snap``.
"""

import functools
import os
from dataclasses import dataclass
from pathlib import Path

from snapcheck.snapfile import SNAPSHOT_SUFFIX


@dataclass(frozen=True)
class SnapshotPaths:
    """
    Where a test module's snapshots live.

    Attributes:
        dir: Directory holding the snapshot file.
        rel_file: Test file path relative to the project directory.
        snap_file: Snapshot file name.
        snap_path: Full path of the snapshot file.
    """

    dir: Path
    rel_file: Path
    snap_file: str
    snap_path: Path


def _relative(path: Path, start: Path) -> Path:
    # os.path.relpath tolerates paths outside start ("../x"); Path.relative_to does not
    return Path(os.path.relpath(path, start))


@functools.lru_cache(maxsize=None)
def determine_snapshot_dir(
    file: Path,
    project_dir: Path,
    fixed_location: Path | None = None,
) -> Path:
    """Return the directory that holds snapshots for the given test file."""
    test_dir = Path(file).parent
    relative_dir = _relative(test_dir, Path(project_dir))

    if fixed_location is not None:
        return Path(fixed_location) / relative_dir

    parts = set(relative_dir.parts)
    if "__tests__" in parts:
        return test_dir / "__snapshots__"
    if "test" in parts or "tests" in parts:
        return test_dir / "snapshots"
    return test_dir


def determine_snapshot_paths(
    file: str | Path,
    project_dir: str | Path,
    fixed_location: str | Path | None = None,
) -> SnapshotPaths:
    """Resolve all snapshot paths for the given test file."""
    file = Path(file)
    project_dir = Path(project_dir)
    if fixed_location is not None:
        fixed_location = Path(fixed_location)

    directory = determine_snapshot_dir(file, project_dir, fixed_location)
    rel_file = _relative(file, project_dir)
    snap_file = f"{rel_file.name}{SNAPSHOT_SUFFIX}"

    return SnapshotPaths(
        dir=directory,
        rel_file=rel_file,
        snap_file=snap_file,
        snap_path=directory / snap_file,
    )
