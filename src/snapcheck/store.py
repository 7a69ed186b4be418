"""
Snapshot store for snapcheck.

The SnapshotStore holds the snapshots of one snapshot file for the duration
of a run. It keeps two title -> Block mappings:

1. old: what was loaded from disk, the source of truth for counts
2. new: what the run is building and what save() will write

When not updating, both names refer to the same mapping, so comparisons read
the prior content directly and only genuinely new entries are appended. When
updating, "new" starts empty and is rebuilt from what the run observes, which
drops stale entries.

Key Invariants:
- Entries are appended in index order; index i needs 0..i-1 present
- An entry holding data is never overwritten
- compare() never mutates "new" unless told not to defer
- save() is the only method that touches the filesystem
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from snapcheck.errors import (
    DuplicateWrite,
    IndexOutOfRange,
    InvalidSnapshotFile,
    SnapshotError,
)
from snapcheck.paths import SnapshotPaths, determine_snapshot_paths
from snapcheck.serializer import Serializer
from snapcheck.snapfile import SnapshotFile
from snapcheck.types import Block, CompareOutcome, DeferredRecording, Entry, SaveResult


logger = logging.getLogger(__name__)


# =============================================================================
# SNAPSHOT STORE
# =============================================================================


class SnapshotStore:
    """
    Old and new snapshots for one snapshot file.

    Stores are normally created with load() or load_file(). A store without
    a snapshot file keeps everything in memory and save() writes nothing.

    Thread Safety:
        This implementation is NOT thread-safe. One run drives one store.

    Example:
        store = load_file("tests/snapshots/test_render.py.snap")
        outcome = store.compare("test_render", 0, {"html": "<p>hi</p>"})
        if outcome.record is not None:
            store.apply(outcome.record)
        store.save()
    """

    def __init__(
        self,
        *,
        old_blocks: dict[str, Block],
        new_blocks: dict[str, Block],
        record_new_snapshots: bool = True,
        updating: bool = False,
        snapshot_file: SnapshotFile | None = None,
        paths: SnapshotPaths | None = None,
        serializer: Serializer | None = None,
        error: SnapshotError | None = None,
    ) -> None:
        """
        Initialize a store.

        Args:
            old_blocks: Blocks loaded from disk.
            new_blocks: Blocks being built. Pass old_blocks itself when not
                        updating.
            record_new_snapshots: If False, missing snapshots fail instead of
                                  being recorded.
            updating: True when the file is being regenerated from scratch.
            snapshot_file: Backing file, or None for an in-memory store.
            paths: Resolved paths, kept for reporting.
            serializer: Serializer for compared values.
            error: Load error to raise on the first compare().
        """
        self._old_blocks = old_blocks
        self._new_blocks = new_blocks
        self._record_new_snapshots = record_new_snapshots
        self._updating = updating
        self._snapshot_file = snapshot_file
        self._paths = paths
        self._serializer = serializer or Serializer()
        self._error = error

        # Order in which titles were first touched this run; save() sorts by it
        self._touched: dict[str, int] = {}

        # Set once any non-skip recording is applied
        self._has_changes = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def updating(self) -> bool:
        return self._updating

    @property
    def record_new_snapshots(self) -> bool:
        return self._record_new_snapshots

    @property
    def has_changes(self) -> bool:
        """True once a recording has been applied."""
        return self._has_changes

    @property
    def error(self) -> SnapshotError | None:
        """Load error that compare() will raise, if any."""
        return self._error

    @property
    def serializer(self) -> Serializer:
        return self._serializer

    @property
    def snapshot_path(self) -> Path | None:
        """Path of the backing file, or None for an in-memory store."""
        return self._snapshot_file.path if self._snapshot_file else None

    @property
    def paths(self) -> SnapshotPaths | None:
        return self._paths

    @property
    def old_blocks(self) -> Mapping[str, Block]:
        """Blocks as loaded from disk (read-only view)."""
        return self._old_blocks

    @property
    def new_blocks(self) -> Mapping[str, Block]:
        """Blocks as built so far this run (read-only view)."""
        return self._new_blocks

    def old_block_length(self, title: str) -> int:
        """Number of entries loaded for title (0 if none)."""
        block = self._old_blocks.get(title)
        return len(block) if block is not None else 0

    def old_snapshot_count(self) -> int:
        """Total number of entries loaded from disk."""
        return sum(len(block) for block in self._old_blocks.values())

    # =========================================================================
    # COMPARISON
    # =========================================================================

    def compare(
        self,
        belongs_to: str,
        index: int,
        expected: Any,
        label: str | None = None,
        defer_recording: bool = True,
    ) -> CompareOutcome:
        """
        Compare a value against the snapshot at (belongs_to, index).

        Args:
            belongs_to: Title of the block.
            index: Position within the block.
            expected: The value to check.
            label: Optional label stored with a new snapshot.
            defer_recording: If True, a new snapshot is returned as a
                             DeferredRecording instead of being applied.

        Returns:
            CompareOutcome. For an existing snapshot, actual is the stored
            data and expected the serialized value. For a missing one,
            passed reflects whether recording is allowed.

        Raises:
            InvalidSnapshotFile: If the snapshot file failed to load.
        """
        if self._error is not None:
            raise self._error

        block = self._new_blocks.get(belongs_to)
        entry = block.get(index) if block is not None else None

        if entry is None or entry.is_placeholder:
            if not self._record_new_snapshots:
                return CompareOutcome(passed=False)

            recording = DeferredRecording(
                title=belongs_to,
                index=index,
                label=label,
                data=self._serializer.serialize(expected),
            )
            if not defer_recording:
                self.apply(recording)
                return CompareOutcome(passed=True, expected=recording.data)
            return CompareOutcome(passed=True, expected=recording.data, record=recording)

        serialized = self._serializer.serialize(expected)
        return CompareOutcome(
            passed=entry.data == serialized,
            actual=entry.data,
            expected=serialized,
        )

    # =========================================================================
    # RECORDING
    # =========================================================================

    def record_serialized(
        self,
        belongs_to: str,
        index: int,
        label: str | None,
        data: str | None,
    ) -> None:
        """
        Write one entry into the "new" mapping.

        Raises:
            IndexOutOfRange: If index is past the end of the block.
            DuplicateWrite: If the entry at index already holds data.
        """
        block = self._new_blocks.get(belongs_to)
        if block is None:
            block = Block()
        entries = block.entries

        if index > len(entries):
            raise IndexOutOfRange(belongs_to, index, len(entries))
        if index < len(entries):
            if not entries[index].is_placeholder:
                raise DuplicateWrite(belongs_to, index)
            entries[index] = Entry(data=data, label=label)
        else:
            entries.append(Entry(data=data, label=label))

        self._new_blocks[belongs_to] = block

    def apply(self, recording: DeferredRecording) -> None:
        """
        Apply a deferred recording.

        Recordings for the same block must be applied in index order.
        """
        if not recording.skipped:
            self._has_changes = True
        self.record_serialized(
            recording.title, recording.index, recording.label, recording.data
        )

    def touch(self, title: str) -> None:
        """Note that title was used this run (first touch wins)."""
        self._touched.setdefault(title, len(self._touched))

    # =========================================================================
    # SKIPPING
    # =========================================================================

    def skip_block(self, title: str) -> None:
        """Carry the old block for title into "new" unchanged."""
        if self._new_blocks is self._old_blocks:
            return

        old_block = self._old_blocks.get(title)
        if old_block is not None:
            self._new_blocks[title] = Block(list(old_block.entries))

    def skip_snapshot(
        self,
        belongs_to: str,
        index: int,
        defer_recording: bool = True,
    ) -> DeferredRecording | None:
        """
        Carry the old entry at (belongs_to, index) into "new" unchanged.

        The old label is kept as-is. If there was no old entry a placeholder
        takes its place so later indices still line up.

        Returns:
            A skipped DeferredRecording when deferring, else None. Also None
            when not updating, since the old entry is already in place.
        """
        if self._new_blocks is self._old_blocks:
            return None

        old_block = self._old_blocks.get(belongs_to)
        entry = old_block.get(index) if old_block is not None else None

        recording = DeferredRecording(
            title=belongs_to,
            index=index,
            label=entry.label if entry else None,
            data=entry.data if entry else None,
            skipped=True,
        )
        if defer_recording:
            return recording

        self.apply(recording)
        return None

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save(self) -> SaveResult | None:
        """
        Persist the "new" mapping.

        Returns:
            SaveResult listing the files written or deleted, or None if
            nothing needed writing.
        """
        if self._updating and not self._new_blocks:
            deleted = self._snapshot_file.delete() if self._snapshot_file else []
            return SaveResult(changed_files=deleted)

        if not self._has_changes:
            return None

        if self._snapshot_file is None:
            logger.debug("In-memory store has changes, nothing to write")
            return None

        path = self._snapshot_file.write(self._sorted_blocks())
        return SaveResult(changed_files=[path])

    def _sorted_blocks(self) -> list[tuple[str, Block]]:
        """Blocks in first-touch order; untouched blocks keep their order at the end."""
        touched = self._touched
        return sorted(
            self._new_blocks.items(),
            key=lambda item: (item[0] not in touched, touched.get(item[0], 0)),
        )

    def __repr__(self) -> str:
        return (
            f"SnapshotStore(path={str(self.snapshot_path)!r}, "
            f"old_blocks={len(self._old_blocks)}, "
            f"new_blocks={len(self._new_blocks)}, "
            f"updating={self._updating})"
        )


# =============================================================================
# LOADING
# =============================================================================


def load_file(
    snap_path: str | Path,
    *,
    record_new_snapshots: bool = True,
    updating: bool = False,
    serializer: Serializer | None = None,
    paths: SnapshotPaths | None = None,
) -> SnapshotStore:
    """
    Create a store backed by the snapshot file at snap_path.

    A missing file yields an empty store. An unreadable file yields a store
    that raises InvalidSnapshotFile on first compare(), unless updating, in
    which case the broken content is discarded.
    """
    snapshot_file = SnapshotFile(snap_path)
    error: SnapshotError | None = None

    try:
        blocks = snapshot_file.read() or {}
    except InvalidSnapshotFile as e:
        blocks = {}
        if updating:
            logger.warning("Discarding unreadable snapshot file while updating: %s", e)
        else:
            error = e

    logger.debug(
        "Loaded %d snapshot blocks from %s (updating=%s)",
        len(blocks), snapshot_file.path, updating,
    )

    return SnapshotStore(
        old_blocks=blocks,
        new_blocks={} if updating else blocks,
        record_new_snapshots=record_new_snapshots,
        updating=updating,
        snapshot_file=snapshot_file,
        paths=paths,
        serializer=serializer,
        error=error,
    )


def load(
    file: str | Path | None = None,
    project_dir: str | Path | None = None,
    fixed_location: str | Path | None = None,
    *,
    record_new_snapshots: bool = True,
    updating: bool = False,
    serializer: Serializer | None = None,
) -> SnapshotStore:
    """
    Create the store for a test file.

    Args:
        file: The test file whose snapshots are wanted.
        project_dir: Project root, used to resolve the snapshot location.
        fixed_location: Optional directory that mirrors the project layout.
        record_new_snapshots: If False, missing snapshots fail.
        updating: If True, the file is rebuilt from this run.
        serializer: Serializer for compared values.

    Returns:
        SnapshotStore. Without file or project_dir the store is in-memory.
    """
    if file is None or project_dir is None:
        blocks: dict[str, Block] = {}
        return SnapshotStore(
            old_blocks=blocks,
            new_blocks={} if updating else blocks,
            record_new_snapshots=record_new_snapshots,
            updating=updating,
            serializer=serializer,
        )

    paths = determine_snapshot_paths(file, project_dir, fixed_location)
    return load_file(
        paths.snap_path,
        record_new_snapshots=record_new_snapshots,
        updating=updating,
        serializer=serializer,
        paths=paths,
    )
