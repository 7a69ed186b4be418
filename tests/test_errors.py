"""
Tests for snapcheck errors.

Every error carries an ErrorCode and a structured payload so callers can
branch on kind instead of class.
"""

from pathlib import Path

import pytest

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
from snapcheck.types import ErrorCode


class TestErrorCodes:
    """Tests that each error reports its code."""

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (DuplicateTestName("t"), ErrorCode.DUPLICATE_TEST_NAME),
            (TestIdentityMismatch("a", "b"), ErrorCode.TEST_IDENTITY_MISMATCH),
            (SnapshotCountMismatch(2, 3), ErrorCode.SNAPSHOT_COUNT_MISMATCH),
            (InvalidSnapshotFile("x.snap", "bad"), ErrorCode.INVALID_SNAPSHOT_FILE),
            (IndexOutOfRange("t", 3, 1), ErrorCode.INDEX_OUT_OF_RANGE),
            (DuplicateWrite("t", 0), ErrorCode.DUPLICATE_WRITE),
            (NotInitialized(), ErrorCode.NOT_INITIALIZED),
            (NoActiveTest(), ErrorCode.NO_ACTIVE_TEST),
        ],
    )
    def test_code(self, error: SnapshotError, code: ErrorCode) -> None:
        """Verify the error carries its code and is a SnapshotError."""
        assert isinstance(error, SnapshotError)
        assert error.code is code


class TestPayloads:
    """Tests for structured error payloads."""

    def test_count_mismatch_payload(self) -> None:
        """Verify expected/actual counts are exposed."""
        error = SnapshotCountMismatch(expected=2, actual=3, test="t1")
        assert error.expected == 2
        assert error.actual == 3
        assert error.details["test"] == "t1"
        assert "expected 2 but got 3" in str(error)

    def test_run_level_count_mismatch_has_no_test(self) -> None:
        """Verify a run-level mismatch names no test."""
        error = SnapshotCountMismatch(expected=5, actual=4)
        assert error.details["test"] is None
        assert "in test" not in str(error)

    def test_invalid_file_payload(self) -> None:
        """Verify the path and cause are kept."""
        error = InvalidSnapshotFile("a/b.snap", "not JSON")
        assert error.path == Path("a/b.snap")
        assert error.details["cause"] == "not JSON"

    def test_block_errors_are_index_errors(self) -> None:
        """Verify block invariant errors are also IndexErrors."""
        assert isinstance(IndexOutOfRange("t", 3, 1), IndexError)
        assert isinstance(DuplicateWrite("t", 0), IndexError)

    def test_to_dict(self) -> None:
        """Verify to_dict() is JSON friendly."""
        data = InvalidSnapshotFile(Path("x.snap"), "bad").to_dict()
        assert data["error_code"] == "invalid_snapshot_file"
        assert data["details"]["path"] == "x.snap"
        assert "x.snap" in data["message"]
