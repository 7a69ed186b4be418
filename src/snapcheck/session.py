"""
Session controller for snapcheck.

A SnapshotSession drives one snapshot file through one test run. The host
test framework calls it at every test start, at every snapshot assertion, at
every test end, and once when the run is over:

    session = SnapshotSession(load_file(path))
    session.start_test("test_render")
    outcome = session.compare(render())
    session.end_test("test_render")
    ...
    session.end_all_tests()     # checks counts, applies recordings, saves

New snapshots are not written into the store when they are first seen. They
are queued as DeferredRecording values and applied in queue order by
end_all_tests(). Because every recording names a position inside its block,
applying them in any other order would break the block's append-only rule.

Key Invariants:
- A test title starts at most once per session
- A test ends with as many snapshots as it was expected to take
- The run as a whole sees every stored snapshot, plus every new one
- Recordings are applied exactly once, in the order they were queued
- A failed run-level check writes nothing to disk; after a per-test
  failure the host decides whether to call end_all_tests() at all
"""

import asyncio
import logging
from typing import Any

from snapcheck.errors import (
    DuplicateTestName,
    NoActiveTest,
    NotInitialized,
    SnapshotCountMismatch,
    TestIdentityMismatch,
)
from snapcheck.store import SnapshotStore
from snapcheck.tracker import TestTracker
from snapcheck.types import CompareOutcome, DeferredRecording, SaveResult


logger = logging.getLogger(__name__)


class SnapshotSession:
    """
    Snapshot bookkeeping for all tests of one snapshot file in one run.

    Thread Safety:
        This implementation is NOT thread-safe. It assumes at most one test
        is taking snapshots at a time. A test may suspend between
        compare() calls; nothing is committed until end_all_tests().

    Example:
        session = SnapshotSession(store)
        session.start_test("test_a")
        assert session.compare({"a": 1}).passed
        session.end_test("test_a")
        result = session.end_all_tests()
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        updating: bool | None = None,
    ) -> None:
        """
        Initialize a session.

        Args:
            store: The store to compare against. Can be attached later with
                   set_store().
            updating: Whether count mismatches are tolerated. Defaults to
                      the store's own updating flag.
        """
        self._store: SnapshotStore | None = None
        self._updating = updating

        # Titles started (or skipped) so far, for duplicate detection
        self._known_tests: set[str] = set()
        self._current: TestTracker | None = None

        # Snapshots the store held before the run
        self._starting_count = 0

        # Snapshots observed this run, across all tests
        self._total_count = 0

        # Recordings waiting for end_all_tests(), in observation order
        self._queue: list[DeferredRecording] = []

        # New snapshots in the queue (skips excluded)
        self._new_count = 0

        # Set once a per-test count mismatch was raised, so the run-level
        # check does not report the same problem again
        self._warned_for_test = False

        if store is not None:
            self.set_store(store)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def store(self) -> SnapshotStore | None:
        return self._store

    @property
    def updating(self) -> bool:
        """True if count mismatches are tolerated."""
        if self._updating is not None:
            return self._updating
        return self._store.updating if self._store is not None else False

    @property
    def current_test(self) -> TestTracker | None:
        """Tracker of the running test, or None between tests."""
        return self._current

    @property
    def starting_count(self) -> int:
        return self._starting_count

    @property
    def total_count(self) -> int:
        """Snapshots observed so far this run."""
        return self._total_count

    @property
    def pending_recordings(self) -> list[DeferredRecording]:
        """Copy of the recording queue, in application order."""
        return list(self._queue)

    def has_test(self, name: str) -> bool:
        """True if name was started or skipped this run."""
        return name in self._known_tests

    # =========================================================================
    # SETUP
    # =========================================================================

    def set_store(self, store: SnapshotStore) -> None:
        """Attach the store and remember how many snapshots it held."""
        self._store = store
        self._starting_count = store.old_snapshot_count()

    def _require_store(self) -> SnapshotStore:
        if self._store is None:
            raise NotInitialized()
        return self._store

    # =========================================================================
    # TEST LIFECYCLE
    # =========================================================================

    def start_test(self, name: str) -> TestTracker:
        """
        Begin tracking a test.

        Raises:
            NotInitialized: If no store is attached.
            DuplicateTestName: If name already ran this session.
        """
        store = self._require_store()
        if name in self._known_tests:
            raise DuplicateTestName(name)

        tracker = TestTracker(name, store)
        self._known_tests.add(name)
        self._current = tracker
        store.touch(name)

        logger.debug("Started %r expecting %d snapshots", name, tracker.expected_count)
        return tracker

    def end_test(self, name: str) -> None:
        """
        Finish tracking a test and check its snapshot count.

        Raises:
            TestIdentityMismatch: If name is not the running test.
            SnapshotCountMismatch: If the test took a different number of
                                   snapshots than expected (not when updating).
        """
        current = self._current
        if current is None or current.name != name:
            raise TestIdentityMismatch(name, current.name if current else None)

        self._current = None
        logger.debug("Ended %r", current)

        if not current.counts_match() and not self.updating:
            self._warned_for_test = True
            raise SnapshotCountMismatch(
                expected=current.expected_count,
                actual=current.actual_count,
                test=name,
            )

    def skip_test(self, name: str) -> None:
        """
        Account for a test that does not run this session.

        Its stored snapshots are carried over untouched and count as seen,
        so the run-level check does not flag them as lost.

        Raises:
            NotInitialized: If no store is attached.
            DuplicateTestName: If name already ran this session.
        """
        store = self._require_store()
        if name in self._known_tests:
            raise DuplicateTestName(name)

        self._known_tests.add(name)
        store.touch(name)
        store.skip_block(name)
        self._total_count += store.old_block_length(name)

    def skip_running_test(self, name: str) -> None:
        """
        End the running test as skipped partway through.

        Whatever the test compared is dropped, its queued recordings
        included. Its stored snapshots carry over as with skip_test().

        Raises:
            TestIdentityMismatch: If name is not the running test.
        """
        current = self._current
        if current is None or current.name != name:
            raise TestIdentityMismatch(name, current.name if current else None)

        store = self._require_store()
        self._current = None

        dropped = [r for r in self._queue if r.title == name]
        self._queue = [r for r in self._queue if r.title != name]
        self._new_count -= sum(1 for r in dropped if self._is_new(r))

        stored = store.old_block_length(name)
        self._total_count += stored - current.actual_count
        store.skip_block(name)

        logger.debug("Skipped %r after %d snapshots", name, current.actual_count)

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def _require_test(self) -> TestTracker:
        self._require_store()
        if self._current is None:
            raise NoActiveTest()
        return self._current

    def _is_new(self, recording: DeferredRecording) -> bool:
        # Recording over a placeholder fills a slot the file already counted
        if recording.skipped:
            return False
        store = self._require_store()
        return recording.index >= store.old_block_length(recording.title)

    def compare(self, value: Any, label: str | None = None) -> CompareOutcome:
        """
        Compare value against the running test's next snapshot.

        Returns:
            CompareOutcome without the recording; new snapshots are queued
            on the session instead.

        Raises:
            NotInitialized: If no store is attached.
            NoActiveTest: If no test is running.
            InvalidSnapshotFile: If the snapshot file failed to load.
        """
        tracker = self._require_test()
        outcome = tracker.compare(value, label)
        self._total_count += 1

        if outcome.record is None:
            return outcome

        self._queue.append(outcome.record)
        if self._is_new(outcome.record):
            self._new_count += 1
        return CompareOutcome(
            passed=outcome.passed,
            actual=outcome.actual,
            expected=outcome.expected,
        )

    def skip_snapshot(self) -> None:
        """Skip the running test's next snapshot, keeping whatever was stored."""
        tracker = self._require_test()
        recording = tracker.skip()
        self._total_count += 1

        if recording is not None:
            self._queue.append(recording)

    # =========================================================================
    # FINALIZATION
    # =========================================================================

    def end_all_tests(self) -> SaveResult | None:
        """
        Check the run's snapshot count, apply recordings and save.

        Returns:
            The store's SaveResult, or None if nothing was written.

        Raises:
            NotInitialized: If no store is attached.
            SnapshotCountMismatch: If snapshots went missing across tests
                                   (not when updating, and not when a test
                                   already reported a mismatch).
        """
        store = self._require_store()

        expected_total = self._starting_count + self._new_count
        if (
            expected_total != self._total_count
            and not self._warned_for_test
            and not self.updating
        ):
            raise SnapshotCountMismatch(expected=expected_total, actual=self._total_count)

        queue, self._queue = self._queue, []
        recorded = sum(1 for r in queue if not r.skipped)
        if recorded:
            logger.info("Recording %d snapshots", recorded)

        for recording in queue:
            store.apply(recording)

        return store.save()

    async def end_all_tests_async(self) -> SaveResult | None:
        """Run end_all_tests() without blocking the event loop."""
        return await asyncio.to_thread(self.end_all_tests)

    def __repr__(self) -> str:
        return (
            f"SnapshotSession(tests={len(self._known_tests)}, "
            f"total={self._total_count}, pending={len(self._queue)})"
        )
