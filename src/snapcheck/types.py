"""
Core data types for snapcheck.

This module defines the data structures shared by the snapshot store and the
session controller:

1. Entry / Block: what a snapshot file holds for one test title
2. DeferredRecording: a decision to add an entry, applied at run end
3. CompareOutcome / SaveResult: what store operations hand back to callers

Entries and recordings are plain values. Blocks are the only mutable
container, and they are only ever appended to (see SnapshotStore).
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


# =============================================================================
# ENUMS
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes carried by every SnapshotError.

    The enum inherits from str so that codes print and compare as plain
    strings, e.g. ``err.code == "duplicate_test_name"``.
    """

    # Session bookkeeping errors
    DUPLICATE_TEST_NAME = "duplicate_test_name"
    TEST_IDENTITY_MISMATCH = "test_identity_mismatch"
    SNAPSHOT_COUNT_MISMATCH = "snapshot_count_mismatch"
    NOT_INITIALIZED = "not_initialized"
    NO_ACTIVE_TEST = "no_active_test"

    # Snapshot file errors
    INVALID_SNAPSHOT_FILE = "invalid_snapshot_file"

    # Block invariant errors
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    DUPLICATE_WRITE = "duplicate_write"


# =============================================================================
# ENTRY / BLOCK
# =============================================================================


@dataclass(frozen=True)
class Entry:
    """
    One recorded reference value.

    Attributes:
        data: Canonical serialized form of the value. None marks a
              placeholder left behind by skipping an index that was never
              recorded; placeholders may be overwritten and are not saved.
        label: Optional caption. Without one, the entry's position in its
               block is its identity.
    """

    data: str | None
    label: str | None = None

    @property
    def is_placeholder(self) -> bool:
        """True if this entry holds no data."""
        return self.data is None


@dataclass
class Block:
    """
    All entries belonging to one test title, in recording order.

    Attributes:
        entries: Ordered entries. Index i is only written once 0..i-1 exist.
    """

    entries: list[Entry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, index: int) -> Entry | None:
        """Return the entry at index, or None if the block is shorter."""
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None


# =============================================================================
# DEFERRED RECORDING
# =============================================================================


@dataclass(frozen=True)
class DeferredRecording:
    """
    A decision to add an entry to the "new" mapping, applied at run end.

    Recordings reference positional indices within their own block, so a
    queue of them must be applied in the order they were produced.

    Attributes:
        title: Title of the block the entry belongs to.
        index: Position of the entry within that block.
        label: Optional entry label.
        data: Canonical serialized data (None for a skipped placeholder).
        skipped: True if this carries an old entry forward unchanged rather
                 than introducing a new one. Skips do not count as changes.

    Example:
        recording = DeferredRecording(title="test_render", index=0, label=None,
                                      data="'hello'")
        store.apply(recording)
    """

    title: str
    index: int
    label: str | None
    data: str | None
    skipped: bool = False

    def __post_init__(self) -> None:
        """Validate the recording after initialization."""
        if self.index < 0:
            raise ValueError(f"index must be >= 0, got {self.index}")


# =============================================================================
# RESULTS
# =============================================================================


@dataclass(frozen=True)
class CompareOutcome:
    """
    The result of comparing a value against its stored snapshot.

    Attributes:
        passed: True if the value matched, or if a new snapshot will be
                recorded for it.
        actual: Stored canonical data (None if nothing was stored).
        expected: Canonical data of the value just compared (None if the
                  comparison did not get as far as serializing).
        record: Recording to apply later, if a new snapshot is pending.
    """

    passed: bool
    actual: str | None = None
    expected: str | None = None
    record: DeferredRecording | None = None


@dataclass(frozen=True)
class SaveResult:
    """
    Files touched by SnapshotStore.save().

    Attributes:
        changed_files: Paths written or deleted.
    """

    changed_files: list[Path] = field(default_factory=list)
