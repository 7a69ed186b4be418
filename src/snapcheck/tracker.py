"""
Per-test snapshot bookkeeping.

A TestTracker lives from start_test() to end_test() of one test. It hands out
positional indices in call order and counts how many snapshots the test took
against how many it was expected to take.
"""

from typing import Any

from snapcheck.store import SnapshotStore
from snapcheck.types import CompareOutcome, DeferredRecording


class TestTracker:
    """
    Snapshot counters for the test currently running.

    Attributes:
        name: Test title, also the block title in the snapshot file.
        expected_count: Entries the test should produce. Starts at the
                        length of the old block. For a test with no stored
                        snapshots it grows by one for every new snapshot
                        recorded; a test with stored snapshots must keep
                        its count.
        actual_count: Snapshots taken so far.
        next_index: Index the next snapshot will use.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, name: str, store: SnapshotStore) -> None:
        self.name = name
        self._store = store

        self.expected_count = store.old_block_length(name)
        self.actual_count = 0
        self.next_index = 0

        # Only tests without stored snapshots may introduce new ones freely
        self._introducing = self.expected_count == 0

    def compare(self, value: Any, label: str | None = None) -> CompareOutcome:
        """Compare value against the next snapshot of this test."""
        index = self.next_index
        self.next_index += 1

        outcome = self._store.compare(self.name, index, value, label)
        self.actual_count += 1

        if outcome.record is not None and self._introducing:
            self.expected_count += 1

        return outcome

    def skip(self) -> DeferredRecording | None:
        """Consume the next index without comparing, keeping the old entry."""
        index = self.next_index
        self.next_index += 1
        self.actual_count += 1
        return self._store.skip_snapshot(self.name, index)

    def counts_match(self) -> bool:
        return self.actual_count == self.expected_count

    def __repr__(self) -> str:
        return (
            f"TestTracker(name={self.name!r}, expected={self.expected_count}, "
            f"actual={self.actual_count})"
        )
