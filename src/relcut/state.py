"""Persisted reconciliation state for a release work directory.

The state maps change ids to the review change numbers they were integrated
as, so a rerun can fingerprint-match instead of uploading again.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import log as relcut_log
from .changes import ChangeUnit
from .config import write_json
from .errors import InvalidInputError


class RunState(BaseModel):
    """State written after every integrated change.

    Example:
        >>> state = RunState(version="go1.9.2")
        >>> state.remember("123", 456)
        >>> state.changes
        {'123': 456}
    """

    model_config = ConfigDict(extra="ignore")

    version: str
    changes: dict[str, int] = Field(default_factory=dict)

    def remember(self, unit_id: str, change_number: int) -> None:
        self.changes[unit_id] = change_number

    def seed(self, units: Iterable[ChangeUnit]) -> int:
        """Fill in missing unit candidates from the stored mapping.

        Returns:
            Number of units that received a candidate.
        """
        seeded = 0
        for unit in units:
            if unit.candidate is not None:
                continue
            number = self.changes.get(unit.id)
            if number is None:
                continue
            unit.candidate = number
            seeded += 1
        return seeded


def load_state(path: Path, version: str) -> RunState:
    """Load state from ``path``; missing or other-version state starts empty."""
    if not path.exists():
        return RunState(version=version)
    try:
        state = RunState.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise InvalidInputError(
            f"invalid relcut state at {path}:\n{exc}",
            recovery_hint=f"remove {path} to start from an empty state",
        ) from exc
    if state.version != version:
        relcut_log.warning(
            f"ignoring state for {state.version} at {path}; current release is {version}"
        )
        return RunState(version=version)
    return state


def save_state(path: Path, state: RunState) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    write_json(tmp, state)
    tmp.replace(path)
