"""Change units: the patches being integrated onto the release branch."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import DuplicateUnitError, InvalidInputError


class UnitStatus(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    REUSED = "reused"
    UPLOADED = "uploaded"
    REJECTED = "rejected"
    BUILD_FAILED = "build_failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self not in {UnitStatus.PENDING, UnitStatus.APPLIED}


@dataclass
class ChangeUnit:
    """One candidate patch for the release branch.

    ``rank`` is ``None`` until the history ranker resolves it. ``candidate``
    is a review change number believed to hold this unit already, either from
    the batch file or from the state of a previous run.
    """

    id: str
    content_ref: str = ""
    source_ref: str = ""
    prerequisites: tuple[str, ...] = ()
    rank: int | None = None
    candidate: int | None = None
    integrated_ref: str | None = None
    status: UnitStatus = UnitStatus.PENDING
    position: int = field(default=0, compare=False)

    def advance(self, status: UnitStatus) -> None:
        """Move to ``status``; terminal states are never left."""
        if self.status.terminal:
            raise RuntimeError(
                f"change {self.id} already settled as {self.status.value}; "
                f"cannot move to {status.value}"
            )
        self.status = status


def _clean_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return value.strip()


class ChangeUnitBoundary(BaseModel):
    """Validated batch entry supplied by the curated input provider."""

    model_config = ConfigDict(extra="allow")

    id: str
    commit: str = ""
    ref: str = ""
    prerequisites: tuple[str, ...] = ()
    candidate: int | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: object) -> object:
        normalized = _clean_str(value)
        if not normalized:
            raise ValueError("missing change id")
        return normalized

    @field_validator("commit", "ref", mode="before")
    @classmethod
    def _normalize_refs(cls, value: object) -> object:
        return _clean_str(value)

    @field_validator("prerequisites", mode="before")
    @classmethod
    def _normalize_prerequisites(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, (str, int)):
            value = [value]
        if not isinstance(value, list):
            raise ValueError("prerequisites must be a list of change ids")
        prerequisites: list[str] = []
        seen: set[str] = set()
        for entry in value:
            prerequisite = _clean_str(entry)
            if not prerequisite or prerequisite in seen:
                continue
            seen.add(prerequisite)
            prerequisites.append(prerequisite)
        return tuple(prerequisites)


class ChangeBatchBoundary(BaseModel):
    """Top-level batch file payload."""

    model_config = ConfigDict(extra="allow")

    changes: list[ChangeUnitBoundary] = Field(default_factory=list)


def build_units(entries: list[ChangeUnitBoundary]) -> list[ChangeUnit]:
    """Turn validated batch entries into change units, rejecting duplicate ids."""
    units: list[ChangeUnit] = []
    seen: set[str] = set()
    for position, entry in enumerate(entries):
        if entry.id in seen:
            raise DuplicateUnitError(entry.id)
        seen.add(entry.id)
        units.append(
            ChangeUnit(
                id=entry.id,
                content_ref=entry.commit,
                source_ref=entry.ref,
                prerequisites=entry.prerequisites,
                candidate=entry.candidate,
                position=position,
            )
        )
    return units


def parse_batch(payload: object, *, source: Path | str | None = None) -> list[ChangeUnit]:
    """Validate a batch payload (a list or ``{"changes": [...]}``).

    Example:
        >>> [unit.id for unit in parse_batch([{"id": 1, "commit": "abc"}])]
        ['1']
    """
    if isinstance(payload, list):
        payload = {"changes": payload}
    try:
        batch = ChangeBatchBoundary.model_validate(payload)
    except ValidationError as exc:
        location = f" at {source}" if source else ""
        raise InvalidInputError(f"invalid change batch{location}:\n{exc}") from exc
    return build_units(batch.changes)


def load_batch(path: Path) -> list[ChangeUnit]:
    """Load the curated change batch from a JSON file."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise InvalidInputError(f"change batch not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"invalid JSON in {path}: {exc}") from exc
    return parse_batch(payload, source=path)
