"""
Errors raised by snapcheck.

Every error is a SnapshotError carrying an ErrorCode and a details dict, so
callers can branch on ``err.code`` instead of on the exception class:

    try:
        session.end_test(name)
    except SnapshotError as err:
        if err.code == ErrorCode.SNAPSHOT_COUNT_MISMATCH:
            print(err.details["expected"], err.details["actual"])

None of these are transient. They signal either a broken snapshot file or a
caller driving the session out of order.
"""

from pathlib import Path
from typing import Any

from snapcheck.types import ErrorCode


class SnapshotError(Exception):
    """
    Base class for snapcheck errors.

    Attributes:
        code: Machine-readable error kind.
        details: Structured payload specific to the error kind.
    """

    code: ErrorCode

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a JSON-friendly dictionary."""
        return {
            "error_code": self.code.value,
            "message": str(self),
            "details": {k: str(v) if isinstance(v, Path) else v
                        for k, v in self.details.items()},
        }


class DuplicateTestName(SnapshotError):
    """A test title was started twice in one run."""

    code = ErrorCode.DUPLICATE_TEST_NAME

    def __init__(self, test: str) -> None:
        super().__init__(
            f"Test {test!r} already ran, you might be using the same name "
            f"within two different nested tests",
            test=test,
        )


class TestIdentityMismatch(SnapshotError):
    """end_test() named a test other than the one being tracked."""

    __test__ = False  # keep pytest from collecting this class

    code = ErrorCode.TEST_IDENTITY_MISMATCH

    def __init__(self, test: str, current: str | None) -> None:
        super().__init__(
            f"Test {test!r} ended but {current!r} is the current test",
            test=test,
            current=current,
        )


class SnapshotCountMismatch(SnapshotError):
    """
    The number of snapshots seen differs from the number expected.

    Raised per test (``test`` set) or for a whole run (``test`` is None).
    """

    code = ErrorCode.SNAPSHOT_COUNT_MISMATCH

    def __init__(self, expected: int, actual: int, test: str | None = None) -> None:
        where = f" in test {test!r}" if test is not None else ""
        super().__init__(
            f"Expected snapshot count changed{where}, expected {expected} "
            f"but got {actual} snapshots",
            expected=expected,
            actual=actual,
            test=test,
        )

    @property
    def expected(self) -> int:
        return self.details["expected"]

    @property
    def actual(self) -> int:
        return self.details["actual"]


class InvalidSnapshotFile(SnapshotError):
    """The snapshot file on disk could not be decoded."""

    code = ErrorCode.INVALID_SNAPSHOT_FILE

    def __init__(self, path: Path | str, cause: str) -> None:
        super().__init__(
            f"Invalid snapshot file {str(path)!r}: {cause}",
            path=Path(path),
            cause=cause,
        )

    @property
    def path(self) -> Path:
        return self.details["path"]


class IndexOutOfRange(SnapshotError, IndexError):
    """A recording skipped ahead of the entries already in its block."""

    code = ErrorCode.INDEX_OUT_OF_RANGE

    def __init__(self, title: str, index: int, length: int) -> None:
        super().__init__(
            f"Cannot record snapshot {index} for {title!r}, exceeds expected "
            f"index of {length}",
            title=title,
            index=index,
            length=length,
        )


class DuplicateWrite(SnapshotError, IndexError):
    """A recording targeted an entry that already holds data."""

    code = ErrorCode.DUPLICATE_WRITE

    def __init__(self, title: str, index: int) -> None:
        super().__init__(
            f"Cannot record snapshot {index} for {title!r}, already exists",
            title=title,
            index=index,
        )


class NotInitialized(SnapshotError):
    """The session was used before a snapshot store was attached."""

    code = ErrorCode.NOT_INITIALIZED

    def __init__(self) -> None:
        super().__init__(
            "Snapshot store not set, did you forget to call set_store()?"
        )


class NoActiveTest(SnapshotError):
    """A snapshot was taken outside of start_test()/end_test()."""

    code = ErrorCode.NO_ACTIVE_TEST

    def __init__(self) -> None:
        super().__init__("No test is running, call start_test() first")
