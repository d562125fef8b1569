"""Batch summary rendering and export."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import write_json
from .driver.models import BatchSummary, UnitOutcome
from .errors import InvalidInputError
from .finalize import FinalizeResult


def _outcome_line(outcome: UnitOutcome) -> str:
    line = f"- {outcome.unit_id}: {outcome.status.value}"
    if outcome.change_number is not None:
        line = f"{line} (review change {outcome.change_number})"
    if outcome.failure is not None:
        line = f"{line}: {outcome.failure.message}"
    return line


def render_summary(summary: BatchSummary, *, say: Callable[[str], None]) -> None:
    """Render per-unit status, reproduction steps and warnings."""
    state = "complete" if summary.complete else "incomplete"
    say(f"Summary for {summary.version}: {state}")
    for outcome in summary.outcomes.values():
        say(_outcome_line(outcome))
        failure = outcome.failure
        if failure is None:
            continue
        if failure.report is not None:
            say("  to reproduce:")
            for command in failure.report.commands():
                say(f"    {command}")
        if failure.output:
            say("  output:")
            for line in failure.output.splitlines():
                say(f"    {line}")
    for unit_id, warning in summary.warnings:
        say(f"warning: {unit_id}: {warning}")
    for note in summary.notes:
        say(f"note: {note}")
    say(f"uploads: {summary.uploads}, builds: {summary.builds}")
    if summary.fatal:
        say(f"FATAL: {summary.fatal}")


def summary_payload(summary: BatchSummary, *, finalize: FinalizeResult | None = None) -> dict:
    """Return the JSON-serializable form of ``summary``.

    Example:
        >>> summary_payload(BatchSummary(version="go1.9.2"))["complete"]
        True
    """
    changes = []
    for outcome in summary.outcomes.values():
        entry: dict[str, object] = {
            "id": outcome.unit_id,
            "status": outcome.status.value,
            "integrated_ref": outcome.integrated_ref,
            "change_number": outcome.change_number,
            "built": outcome.built,
            "warnings": list(outcome.warnings),
        }
        failure = outcome.failure
        if failure is not None:
            entry["failure"] = {
                "kind": failure.kind,
                "message": failure.message,
                "output": failure.output,
                "reproduce": list(failure.report.commands()) if failure.report else [],
            }
        changes.append(entry)
    payload: dict[str, object] = {
        "version": summary.version,
        "complete": summary.complete,
        "fatal": summary.fatal,
        "uploads": summary.uploads,
        "builds": summary.builds,
        "notes": list(summary.notes),
        "changes": changes,
    }
    if finalize is not None:
        payload["tag"] = {
            "tagged": finalize.tagged,
            "pushed": finalize.pushed,
            "detail": finalize.detail,
            "submitted": list(finalize.submitted),
        }
    return payload


def write_summary(
    path: Path, summary: BatchSummary, *, finalize: FinalizeResult | None = None
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    write_json(path, summary_payload(summary, finalize=finalize))


class RecordedChange(BaseModel):
    """One change entry read back from ``summary.json``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    change_number: int | None = None


class RecordedSummary(BaseModel):
    """The parts of ``summary.json`` a later ``relcut tag`` relies on.

    Example:
        >>> RecordedSummary.model_validate(
        ...     {"version": "go1.9.2", "complete": True,
        ...      "changes": [{"id": "a", "status": "uploaded", "change_number": 1001}]}
        ... ).change_numbers
        [1001]
    """

    model_config = ConfigDict(extra="ignore")

    version: str
    complete: bool
    fatal: str | None = None
    changes: list[RecordedChange] = Field(default_factory=list)

    @property
    def change_numbers(self) -> list[int]:
        return [
            change.change_number
            for change in self.changes
            if change.change_number is not None
        ]


def load_summary(path: Path) -> RecordedSummary | None:
    """Read ``summary.json``; ``None`` when no run has written one."""
    if not path.exists():
        return None
    try:
        return RecordedSummary.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise InvalidInputError(
            f"invalid relcut summary at {path}:\n{exc}",
            recovery_hint="rerun the batch with 'relcut run'",
        ) from exc
