"""
Run-mode settings for snapcheck.

Two switches decide how a run treats its snapshots:

- updating: regenerate snapshot files from what the run observes. Enabled by
  the ``--snapshot-update`` pytest flag or ``SNAPSHOT_UPDATE=true``.
- record_new_snapshots: write snapshots that do not exist yet. Disabled in
  CI, where a missing snapshot should fail instead of being invented.

An optional fixed snapshot directory comes from the ``snapshot_dir`` ini
option or ``SNAPSHOT_DIR``.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


# =============================================================================
# CONFIGURATION
# =============================================================================


# Environment variable that turns on updating mode when set to "true"
UPDATE_ENV_VAR = "SNAPSHOT_UPDATE"

# Environment variable naming a fixed snapshot directory
SNAPSHOT_DIR_ENV_VAR = "SNAPSHOT_DIR"

# Environment variables set by common CI services
CI_ENV_VARS = (
    "CI",
    "CONTINUOUS_INTEGRATION",
    "BUILD_NUMBER",
    "RUN_ID",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "BUILDKITE",
    "CIRCLECI",
    "TRAVIS",
    "TF_BUILD",
    "JENKINS_URL",
    "TEAMCITY_VERSION",
)

# Values of CI_ENV_VARS that mean "not in CI"
_FALSE_VALUES = ("", "0", "false", "no")


def is_ci(environ: Mapping[str, str] | None = None) -> bool:
    """True if environ looks like a CI environment."""
    environ = os.environ if environ is None else environ
    return any(
        environ.get(name, "").strip().lower() not in _FALSE_VALUES
        for name in CI_ENV_VARS
    )


# =============================================================================
# SETTINGS
# =============================================================================


@dataclass(frozen=True)
class SnapshotSettings:
    """
    Resolved run-mode settings.

    Attributes:
        updating: Rebuild snapshot files from this run.
        record_new_snapshots: Record snapshots that are missing.
        fixed_location: Directory mirroring the project layout for snapshot
                        files, or None to keep them next to the tests.
    """

    updating: bool = False
    record_new_snapshots: bool = True
    fixed_location: Path | None = None

    @classmethod
    def from_environ(
        cls,
        update_flag: bool = False,
        snapshot_dir: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "SnapshotSettings":
        """
        Build settings from a CLI flag, an ini value and the environment.

        Args:
            update_flag: True if --snapshot-update was passed.
            snapshot_dir: Value of the snapshot_dir ini option, if any. Takes
                          precedence over SNAPSHOT_DIR.
            environ: Environment to read. Defaults to os.environ.
        """
        environ = os.environ if environ is None else environ

        updating = update_flag or environ.get(UPDATE_ENV_VAR, "").lower() == "true"

        fixed_location = snapshot_dir or environ.get(SNAPSHOT_DIR_ENV_VAR) or None

        return cls(
            updating=updating,
            record_new_snapshots=not is_ci(environ),
            fixed_location=Path(fixed_location) if fixed_location else None,
        )
