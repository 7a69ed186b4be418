"""
snapcheck: snapshot testing with strict snapshot bookkeeping

Every snapshot assertion in a test run is compared against a reference value
recorded by an earlier run. snapcheck decides whether the value matches,
records references that do not exist yet, and rewrites the snapshot file
only when the run actually changed something.

This module provides the building blocks for:
- Snapshot storage (old vs. new entries, comparison, saving)
- Session control (per-test and per-run snapshot counts, ordered recording)
- Canonical serialization (pluggable formatters)
- pytest integration (the ``snapshot`` fixture)

Example usage without pytest:
    from snapcheck import SnapshotSession, load

    store = load("tests/test_render.py", project_dir=".")
    session = SnapshotSession(store)

    session.start_test("test_render")
    outcome = session.compare({"html": "<p>hello</p>"})
    assert outcome.passed
    session.end_test("test_render")

    session.end_all_tests()

With pytest, the plugin is registered automatically:
    def test_render(snapshot):
        snapshot.assert_match({"html": "<p>hello</p>"})
"""

__version__ = "0.1.0"

# Core types
from snapcheck.types import (
    Block,
    CompareOutcome,
    DeferredRecording,
    Entry,
    ErrorCode,
    SaveResult,
)

# Errors
from snapcheck.errors import (
    DuplicateTestName,
    DuplicateWrite,
    IndexOutOfRange,
    InvalidSnapshotFile,
    NoActiveTest,
    NotInitialized,
    SnapshotCountMismatch,
    SnapshotError,
    TestIdentityMismatch,
)

# Serialization
from snapcheck.serializer import Formatter, Serializer

# Store and session
from snapcheck.store import SnapshotStore, load, load_file
from snapcheck.session import SnapshotSession

# Settings
from snapcheck.config import SnapshotSettings

__all__ = [
    # Version
    "__version__",
    # Types
    "Block",
    "CompareOutcome",
    "DeferredRecording",
    "Entry",
    "ErrorCode",
    "SaveResult",
    # Errors
    "DuplicateTestName",
    "DuplicateWrite",
    "IndexOutOfRange",
    "InvalidSnapshotFile",
    "NoActiveTest",
    "NotInitialized",
    "SnapshotCountMismatch",
    "SnapshotError",
    "TestIdentityMismatch",
    # Serialization
    "Formatter",
    "Serializer",
    # Store / session
    "SnapshotStore",
    "load",
    "load_file",
    "SnapshotSession",
    # Settings
    "SnapshotSettings",
]
