"""Integration driver data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from ..changes import ChangeUnit, UnitStatus

FailureKind = Literal[
    "missing_content",
    "unreachable_content",
    "apply_conflict",
    "build_failed",
]


@dataclass(frozen=True)
class BuildResult:
    ok: bool
    output: str = ""


@dataclass(frozen=True)
class ReproductionReport:
    """What an operator needs to replay a failed unit by hand."""

    base_ref: str
    tip_commit: str
    source_ref: str
    content_ref: str
    remote: str = "origin"
    build_command: str | None = None

    def commands(self) -> tuple[str, ...]:
        lines = [
            f"git fetch {self.remote} {self.base_ref}",
            f"git checkout {self.tip_commit}",
        ]
        if self.source_ref:
            lines.append(f"git fetch {self.remote} {self.source_ref}")
        lines.append(f"git cherry-pick {self.content_ref}")
        if self.build_command:
            lines.append(self.build_command)
        return tuple(lines)


@dataclass(frozen=True)
class UnitFailure:
    kind: FailureKind
    message: str
    report: ReproductionReport | None = None
    output: str = ""


@dataclass
class UnitOutcome:
    unit_id: str
    status: UnitStatus = UnitStatus.PENDING
    integrated_ref: str | None = None
    change_number: int | None = None
    failure: UnitFailure | None = None
    warnings: list[str] = field(default_factory=list)
    built: bool = False


@dataclass
class BatchSummary:
    """Per-unit outcomes of one run, in integration order."""

    version: str
    outcomes: dict[str, UnitOutcome] = field(default_factory=dict)
    fatal: str | None = None
    notes: list[str] = field(default_factory=list)

    def begin(self, order: list[ChangeUnit]) -> None:
        for unit in order:
            self.outcomes.setdefault(unit.id, UnitOutcome(unit_id=unit.id, status=unit.status))

    def record(self, outcome: UnitOutcome) -> None:
        self.outcomes[outcome.unit_id] = outcome

    @property
    def failures(self) -> list[UnitOutcome]:
        return [outcome for outcome in self.outcomes.values() if outcome.failure is not None]

    @property
    def warnings(self) -> list[tuple[str, str]]:
        return [
            (outcome.unit_id, warning)
            for outcome in self.outcomes.values()
            for warning in outcome.warnings
        ]

    @property
    def uploads(self) -> int:
        return sum(1 for outcome in self.outcomes.values() if outcome.status is UnitStatus.UPLOADED)

    @property
    def builds(self) -> int:
        return sum(1 for outcome in self.outcomes.values() if outcome.built)

    @property
    def complete(self) -> bool:
        return self.fatal is None and not self.failures and all(
            outcome.status in {UnitStatus.REUSED, UnitStatus.UPLOADED}
            for outcome in self.outcomes.values()
        )
