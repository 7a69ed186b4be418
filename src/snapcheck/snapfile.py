"""
Snapshot file persistence for snapcheck.

A snapshot file holds flat key/value pairs, one per entry:

    "<title>//<label-or-index>" -> canonical data

The suffix is the entry's label if it has one, otherwise its position in the
block rendered as a decimal string. Decoding reverses this by splitting on the
first "//" and treating the suffix as "no label" only if it is exactly the
decimal rendering of a non-negative integer. A label such as "2" therefore
reads back as an unlabeled entry; the format keeps that ambiguity for
compatibility with existing files.

On disk the pairs live in a small JSON container:

    {
      "schema_version": 1,
      "snapshots": {
        "test_render//0": "\"hello\"",
        "test_render//footer": "\"bye\""
      }
    }

Pairs are written in block order, so the file diffs cleanly between runs.
"""

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from snapcheck.errors import InvalidSnapshotFile
from snapcheck.types import Block, Entry


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================


# Current schema version for the JSON container
SCHEMA_VERSION = 1

# Separator between title and label/index in persisted keys
KEY_SEPARATOR = "//"

# Extension appended to the test file name
SNAPSHOT_SUFFIX = ".snap"


# =============================================================================
# KEY ENCODING
# =============================================================================


def encode_key(title: str, label: str | None, index: int) -> str:
    """Build the persisted key for an entry."""
    suffix = label if label is not None else str(index)
    return f"{title}{KEY_SEPARATOR}{suffix}"


def decode_key(key: str) -> tuple[str, str | None]:
    """
    Split a persisted key into (title, label).

    Returns:
        The title, and the label or None if the suffix is a positional index.

    Raises:
        ValueError: If the key has no separator.
    """
    title, sep, suffix = key.partition(KEY_SEPARATOR)
    if not sep:
        raise ValueError(f"key {key!r} has no {KEY_SEPARATOR!r} separator")

    # Only the exact decimal form of a non-negative integer is an index;
    # "03" and "-1" stay labels.
    if suffix.isdecimal() and str(int(suffix)) == suffix:
        return title, None
    return title, suffix


def decode_snapshots(pairs: dict[str, Any]) -> dict[str, Block]:
    """
    Group persisted pairs into blocks, keeping file order.

    An unlabeled entry goes back to the index in its key. Indices that were
    skipped and never recorded are filled with placeholders, so the entries
    after them keep their positions. Labeled entries, and unlabeled ones
    whose slot is already taken, are appended.

    Raises:
        ValueError: If a key is malformed or a value is not a string.
    """
    blocks: dict[str, Block] = {}
    for key, value in pairs.items():
        if not isinstance(value, str):
            raise ValueError(f"value for {key!r} must be a string")
        title, label = decode_key(key)
        entries = blocks.setdefault(title, Block()).entries
        entry = Entry(data=value, label=label)

        if label is None:
            index = int(key.partition(KEY_SEPARATOR)[2])
            if index < len(entries) and entries[index].is_placeholder:
                entries[index] = entry
                continue
            while len(entries) < index:
                entries.append(Entry(data=None))

        entries.append(entry)
    return blocks


def encode_blocks(blocks: Iterable[tuple[str, Block]]) -> dict[str, str]:
    """Flatten (title, block) pairs into persisted key/value pairs."""
    pairs: dict[str, str] = {}
    for title, block in blocks:
        for index, entry in enumerate(block.entries):
            # Placeholders from skipped, never-recorded indices hold nothing
            if entry.is_placeholder:
                continue
            key = encode_key(title, entry.label, index)
            if key in pairs:
                logger.warning(
                    "Snapshot key %r is used twice in %r; the later entry replaces "
                    "the earlier one",
                    key, title,
                )
            elif entry.label is not None and decode_key(key)[1] is None:
                if entry.label != str(index):
                    logger.warning(
                        "Label %r of snapshot %d in %r will read back as an index",
                        entry.label, index, title,
                    )
            pairs[key] = entry.data
    return pairs


# =============================================================================
# SNAPSHOT FILE
# =============================================================================


class SnapshotFile:
    """
    One snapshot file on disk.

    The file is only read by read() and only changed by write() or delete();
    nothing else in snapcheck touches the filesystem.

    Example:
        snap = SnapshotFile("tests/snapshots/test_render.py.snap")
        blocks = snap.read() or {}
        snap.write(blocks.items())
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Location of the snapshot file."""
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def read(self) -> dict[str, Block] | None:
        """
        Load the file into a title -> Block mapping.

        Returns:
            The decoded blocks, or None if the file does not exist.

        Raises:
            InvalidSnapshotFile: If the file is not a valid snapshot file.
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise InvalidSnapshotFile(self._path, f"not UTF-8: {e}") from e

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidSnapshotFile(self._path, f"not JSON: {e}") from e

        if not isinstance(document, dict):
            raise InvalidSnapshotFile(self._path, "top level must be an object")

        schema_version = document.get("schema_version")
        if schema_version != SCHEMA_VERSION:
            raise InvalidSnapshotFile(
                self._path,
                f"schema version mismatch: file has {schema_version}, "
                f"expected {SCHEMA_VERSION}",
            )

        pairs = document.get("snapshots")
        if not isinstance(pairs, dict):
            raise InvalidSnapshotFile(self._path, "'snapshots' must be an object")

        try:
            return decode_snapshots(pairs)
        except ValueError as e:
            raise InvalidSnapshotFile(self._path, str(e)) from e

    def write(self, blocks: Iterable[tuple[str, Block]]) -> Path:
        """
        Replace the file with the given blocks.

        The document is written to a temporary sibling first and moved into
        place, so readers never see a half-written file.

        Returns:
            The path written.
        """
        document = {
            "schema_version": SCHEMA_VERSION,
            "snapshots": encode_blocks(blocks),
        }
        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Wrote %d snapshots to %s", len(document["snapshots"]), self._path)
        return self._path

    def delete(self) -> list[Path]:
        """
        Remove the file.

        Returns:
            [path] if a file was removed, [] if there was nothing to remove.
        """
        try:
            self._path.unlink()
        except FileNotFoundError:
            return []
        logger.info("Deleted snapshot file %s", self._path)
        return [self._path]

    def __repr__(self) -> str:
        return f"SnapshotFile({str(self._path)!r})"
