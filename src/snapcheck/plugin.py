"""
pytest integration for snapcheck.

Registered through the ``pytest11`` entry point. Every test module that uses
the ``snapshot`` fixture gets its own SnapshotSession, backed by the module's
snapshot file:

    def test_render(snapshot):
        snapshot.assert_match(render("hello"))
        snapshot.assert_match(render("bye"), "farewell")

Lifecycle:
1. The fixture starts the test on the module's session and ends it on
   teardown; count problems surface as errors of that test, and the
   module's snapshot file is then left as it was.
2. Tests that were skipped before running, or deselected, are handed to
   skip_test() so their stored snapshots survive. A test that skips itself
   after the fixture was set up keeps its stored snapshots the same way.
3. When the pytest session finishes, every module session runs
   end_all_tests(). Failures are listed in the terminal summary and make
   the run fail.

Options:
    --snapshot-update       rebuild snapshot files (also SNAPSHOT_UPDATE=true)
    snapshot_dir (ini)      keep snapshot files under one directory
"""

import difflib
import logging
from collections.abc import Generator, Iterator
from pathlib import Path
from typing import Any

import pytest

from snapcheck.config import SnapshotSettings
from snapcheck.errors import SnapshotError
from snapcheck.session import SnapshotSession
from snapcheck.store import load
from snapcheck.types import CompareOutcome


logger = logging.getLogger(__name__)


# Name the plugin object is registered under
PLUGIN_NAME = "snapcheck-session"

# Latest setup or call report of a test, read by the fixture on teardown
run_report_key = pytest.StashKey[pytest.TestReport]()


def title_for(nodeid: str) -> str:
    """Block title for a test: its node id without the file part."""
    _, sep, rest = nodeid.partition("::")
    return rest if sep else nodeid


# =============================================================================
# ASSERTION HELPER
# =============================================================================


def format_failure(outcome: CompareOutcome, label: str | None = None) -> str:
    """Build the assertion message for a failed comparison."""
    name = f"Snapshot {label!r}" if label is not None else "Snapshot"

    if outcome.actual is None:
        return (
            f"{name} does not exist and recording new snapshots is disabled "
            f"in this environment. Run the tests locally to record it."
        )

    diff = difflib.unified_diff(
        outcome.actual.splitlines(),
        (outcome.expected or "").splitlines(),
        fromfile="snapshot",
        tofile="received",
        lineterm="",
    )
    return f"{name} does not match.\n" + "\n".join(diff)


class SnapshotAssertion:
    """
    The object handed out by the ``snapshot`` fixture.

    Each call takes the next snapshot of the running test, in order.
    """

    def __init__(self, session: SnapshotSession) -> None:
        self._session = session

    def assert_match(self, value: Any, label: str | None = None) -> None:
        """
        Assert that value matches the next stored snapshot.

        Raises:
            AssertionError: With a diff, if the value does not match.
        """
        outcome = self._session.compare(value, label)
        if not outcome.passed:
            raise AssertionError(format_failure(outcome, label))

    __call__ = assert_match

    def skip(self) -> None:
        """Skip the next snapshot, keeping its stored value."""
        self._session.skip_snapshot()


# =============================================================================
# PLUGIN
# =============================================================================


class SnapshotPlugin:
    """Owns one SnapshotSession per test module for a pytest run."""

    def __init__(self, config: pytest.Config, settings: SnapshotSettings) -> None:
        self._config = config
        self.settings = settings

        self._sessions: dict[Path, SnapshotSession] = {}

        # (module path, title) of tests that did not run
        self._not_run: list[tuple[Path, str]] = []

        # node id -> module path of selected tests
        self._item_paths: dict[str, Path] = {}

        # Modules whose session hit an invariant error; never saved
        self._aborted: set[Path] = set()

        self.errors: list[tuple[Path, SnapshotError]] = []
        self.changed_files: list[Path] = []

    def session_for(self, path: Path) -> SnapshotSession:
        """Return the session of a test module, creating it on first use."""
        session = self._sessions.get(path)
        if session is None:
            fixed_location = self.settings.fixed_location
            if fixed_location is not None:
                fixed_location = self._config.rootpath / fixed_location

            store = load(
                path,
                self._config.rootpath,
                fixed_location,
                record_new_snapshots=self.settings.record_new_snapshots,
                updating=self.settings.updating,
            )
            session = SnapshotSession(store, updating=self.settings.updating)
            self._sessions[path] = session
            logger.debug("Snapshot session for %s uses %s", path, store.snapshot_path)
        return session

    def abort(self, path: Path) -> None:
        """Abandon a module's pending snapshots; its file stays as it was."""
        self._aborted.add(path)

    # =========================================================================
    # HOOKS
    # =========================================================================

    @pytest.hookimpl(trylast=True)
    def pytest_collection_modifyitems(self, items: list[pytest.Item]) -> None:
        for item in items:
            self._item_paths[item.nodeid] = item.path

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_makereport(
        self, item: pytest.Item, call: pytest.CallInfo[None]
    ) -> Generator[None, Any, None]:
        outcome = yield
        report = outcome.get_result()
        if report.when in ("setup", "call"):
            item.stash[run_report_key] = report

    def pytest_deselected(self, items: list[pytest.Item]) -> None:
        for item in items:
            self._not_run.append((item.path, title_for(item.nodeid)))

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        # Skipped during setup means the snapshot fixture never ran
        if report.when == "setup" and report.skipped:
            path = self._item_paths.get(report.nodeid)
            if path is not None:
                self._not_run.append((path, title_for(report.nodeid)))

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        if exitstatus == pytest.ExitCode.INTERRUPTED:
            logger.info("Run interrupted, snapshot files left untouched")
            return

        for path, title in self._not_run:
            snapshot_session = self._sessions.get(path)
            if snapshot_session is not None and not snapshot_session.has_test(title):
                snapshot_session.skip_test(title)

        for path, snapshot_session in self._sessions.items():
            if path in self._aborted:
                logger.info("Snapshot errors in %s, snapshot file left untouched", path)
                continue
            try:
                result = snapshot_session.end_all_tests()
            except SnapshotError as e:
                self.errors.append((path, e))
                continue
            if result is not None:
                self.changed_files.extend(result.changed_files)

        if self.errors and session.exitstatus == pytest.ExitCode.OK:
            session.exitstatus = pytest.ExitCode.TESTS_FAILED

    def pytest_terminal_summary(self, terminalreporter: Any) -> None:
        if self.changed_files:
            terminalreporter.write_sep("-", "snapshots")
            for path in self.changed_files:
                terminalreporter.write_line(f"changed {path}")

        if self.errors:
            terminalreporter.write_sep("=", "snapshot errors", red=True)
            for path, error in self.errors:
                terminalreporter.write_line(f"{path}: {error}")


# =============================================================================
# ENTRY POINT HOOKS
# =============================================================================


plugin_key = pytest.StashKey[SnapshotPlugin]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("snapcheck", "snapshot testing")
    group.addoption(
        "--snapshot-update",
        action="store_true",
        default=False,
        dest="snapshot_update",
        help="Rebuild snapshot files from this run, dropping stale snapshots.",
    )
    parser.addini(
        "snapshot_dir",
        "Directory (relative to rootdir) that holds all snapshot files.",
        default="",
    )


def pytest_configure(config: pytest.Config) -> None:
    settings = SnapshotSettings.from_environ(
        update_flag=config.getoption("snapshot_update"),
        snapshot_dir=config.getini("snapshot_dir") or None,
    )
    plugin = SnapshotPlugin(config, settings)
    config.stash[plugin_key] = plugin
    config.pluginmanager.register(plugin, PLUGIN_NAME)


@pytest.fixture
def snapshot(request: pytest.FixtureRequest) -> Iterator[SnapshotAssertion]:
    """Snapshot assertions for the running test."""
    plugin = request.config.stash[plugin_key]
    path = request.node.path
    session = plugin.session_for(path)
    title = title_for(request.node.nodeid)

    try:
        session.start_test(title)
    except SnapshotError:
        plugin.abort(path)
        raise

    yield SnapshotAssertion(session)

    # Skipped partway through, or stopped at setup: the snapshots it did not
    # reach are not lost
    report = request.node.stash.get(run_report_key, None)
    incomplete = report is not None and (report.skipped or report.when == "setup")

    try:
        if incomplete:
            session.skip_running_test(title)
        else:
            session.end_test(title)
    except SnapshotError:
        plugin.abort(path)
        raise
