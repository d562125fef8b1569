"""Path helpers for locating relcut work directories and files."""

import os
from pathlib import Path

from platformdirs import user_data_dir

RELCUT_APP_NAME = "relcut"
WORK_DIR_ENV = "RELCUT_WORK_DIR"
MIRROR_DIRNAME = "gitmirror"
CHECKOUT_DIRNAME = "gitwork"
STATE_FILENAME = "state.json"
SUMMARY_FILENAME = "summary.json"


def relcut_data_dir() -> Path:
    """Return the base relcut data directory.

    ``RELCUT_WORK_DIR`` overrides the platform default.

    Example:
        >>> isinstance(relcut_data_dir(), Path)
        True
    """
    override = os.environ.get(WORK_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(RELCUT_APP_NAME))


def release_dir(version: str, *, base: Path | None = None) -> Path:
    """Return the work directory for one release version.

    Example:
        >>> release_dir("GO1.9.2", base=Path("/w")).as_posix()
        '/w/go1.9.2'
    """
    root = base if base is not None else relcut_data_dir()
    return root / version.strip().lower()


def mirror_dir(release_root: Path) -> Path:
    """Return the object-cache mirror clone shared by runs of a release."""
    return release_root / MIRROR_DIRNAME


def checkout_dir(release_root: Path) -> Path:
    """Return the per-run work checkout."""
    return release_root / CHECKOUT_DIRNAME


def state_path(release_root: Path) -> Path:
    """Return the persisted reconciliation state file."""
    return release_root / STATE_FILENAME


def summary_path(release_root: Path) -> Path:
    """Return the JSON batch summary written after each run."""
    return release_root / SUMMARY_FILENAME
