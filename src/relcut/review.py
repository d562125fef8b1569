"""Gerrit review-system access and typed change records."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import exec as exec_util
from . import log as relcut_log
from .errors import ExternalCommandError, RemoteLookupError
from .models import VOTE_MAX, VOTE_MIN, ReviewSection

if TYPE_CHECKING:
    from .driver.ports import VersionControl

_RETRY_ERROR_MARKERS = (
    "timed out",
    "timeout",
    "temporarily unavailable",
    "connection reset",
    "connection refused",
    "connection closed",
    "broken pipe",
)


class ReviewLabel(str, Enum):
    BUILD_VERIFICATION = "build_verification"
    APPROVAL = "approval"


@dataclass(frozen=True)
class RemoteChange:
    """Current state of one review change."""

    number: int
    revision: str
    ref: str
    votes: Mapping[ReviewLabel, int] = field(default_factory=dict)

    def vote(self, label: ReviewLabel) -> int:
        return self.votes.get(label, 0)


class GerritApprovalBoundary(BaseModel):
    """One vote on a patch set."""

    model_config = ConfigDict(extra="allow")

    type: str
    value: int

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: object) -> object:
        if isinstance(value, str):
            return int(value.strip())
        return value

    @field_validator("value", mode="after")
    @classmethod
    def _clamp(cls, value: int) -> int:
        return max(VOTE_MIN, min(VOTE_MAX, value))


class GerritPatchSetBoundary(BaseModel):
    model_config = ConfigDict(extra="allow")

    revision: str
    ref: str
    approvals: list[GerritApprovalBoundary] = Field(default_factory=list)


class GerritChangeBoundary(BaseModel):
    """Change record emitted by ``gerrit query --format=JSON``."""

    model_config = ConfigDict(extra="allow")

    number: int
    current_patch_set: GerritPatchSetBoundary | None = Field(
        default=None, alias="currentPatchSet"
    )

    @field_validator("number", mode="before")
    @classmethod
    def _parse_number(cls, value: object) -> object:
        if isinstance(value, str):
            return int(value.strip())
        return value


def label_votes(
    approvals: list[GerritApprovalBoundary], label_names: Mapping[str, ReviewLabel]
) -> dict[ReviewLabel, int]:
    """Collapse individual approvals into one vote per known label.

    Any negative vote blocks, so the most negative vote wins when present;
    otherwise the highest vote counts. Labels outside ``label_names`` are
    ignored.
    """
    collected: dict[ReviewLabel, list[int]] = {}
    for approval in approvals:
        label = label_names.get(approval.type)
        if label is None:
            continue
        collected.setdefault(label, []).append(approval.value)
    votes: dict[ReviewLabel, int] = {}
    for label, values in collected.items():
        lowest = min(values)
        votes[label] = lowest if lowest < 0 else max(values)
    return votes


def to_remote_change(
    boundary: GerritChangeBoundary, label_names: Mapping[str, ReviewLabel]
) -> RemoteChange | None:
    patch_set = boundary.current_patch_set
    if patch_set is None:
        return None
    return RemoteChange(
        number=boundary.number,
        revision=patch_set.revision,
        ref=patch_set.ref,
        votes=label_votes(patch_set.approvals, label_names),
    )


def _is_retryable_message(message: str) -> bool:
    normalized = message.strip().lower()
    if not normalized:
        return False
    return any(marker in normalized for marker in _RETRY_ERROR_MARKERS)


@dataclass
class GerritReview:
    """Review-system adapter backed by Gerrit's ssh query command."""

    settings: ReviewSection
    branch: str
    runner: exec_util.CommandRunner | None = None
    retry_backoff_seconds: float = 0.5

    @property
    def label_names(self) -> dict[str, ReviewLabel]:
        return {
            self.settings.build_verification_label: ReviewLabel.BUILD_VERIFICATION,
            self.settings.approval_label: ReviewLabel.APPROVAL,
        }

    def _command(self, *args: str) -> tuple[str, ...]:
        if not self.settings.query_command:
            raise ExternalCommandError(
                "review.query_command is not configured",
                recovery_hint='set review.query_command, e.g. ["ssh", "-p", "29418", '
                '"review.example.com", "gerrit"]',
            )
        return (*self.settings.query_command, *args)

    def _query(self, query: str) -> list[RemoteChange]:
        request = exec_util.CommandRequest(
            argv=self._command(
                "query",
                "--format=JSON",
                "--current-patch-set",
                query,
            ),
            timeout_seconds=self.settings.timeout_seconds,
        )
        attempts = max(int(self.settings.retry_attempts), 1)
        for attempt in range(1, attempts + 1):
            try:
                result = exec_util.run_checked(request, runner=self.runner)
            except exec_util.CommandExecutionError as exc:
                if attempt < attempts and _is_retryable_message(str(exc)):
                    relcut_log.debug(f"review query retry attempt={attempt} query={query}")
                    time.sleep(self.retry_backoff_seconds * attempt)
                    continue
                raise ExternalCommandError(f"review query failed: {exc}") from exc
            try:
                records = exec_util.parse_json_lines_models(
                    result,
                    model_type=GerritChangeBoundary,
                    skip="rowCount",
                    context=f"gerrit query {query}",
                )
            except exec_util.CommandParseError as exc:
                raise ExternalCommandError(str(exc)) from exc
            changes = [to_remote_change(record, self.label_names) for record in records]
            return [change for change in changes if change is not None]
        raise ExternalCommandError(f"review query failed: {query}")

    def get_change(self, number: int) -> RemoteChange | None:
        changes = self._query(f"change:{number}")
        return changes[0] if changes else None

    def find_change_by_commit(self, commit: str) -> RemoteChange | None:
        changes = self._query(f"commit:{commit}")
        if len(changes) > 1:
            numbers = ", ".join(str(change.number) for change in changes)
            relcut_log.warning(f"commit {commit} matches several review changes: {numbers}")
        return changes[0] if changes else None

    def upload_target(self) -> str:
        """Return the push refspec target for new review changes.

        Example:
            >>> GerritReview(ReviewSection(), "release-branch.go1.9").upload_target()
            'refs/for/release-branch.go1.9%l=Run-TryBot+1'
        """
        target = self.settings.upload_ref.format(branch=self.branch)
        if self.settings.upload_options:
            target = f"{target}%{','.join(self.settings.upload_options)}"
        return target

    def upload_change(self, vcs: VersionControl) -> RemoteChange:
        """Push the checkout tip for review and return the resulting change."""
        vcs.push(f"HEAD:{self.upload_target()}")
        tip = vcs.current_tip()
        change = self.find_change_by_commit(tip)
        if change is None:
            raise RemoteLookupError(tip)
        return change

    def submit_change(self, change: RemoteChange) -> None:
        """Submit the current revision of ``change`` to its target branch."""
        request = exec_util.CommandRequest(
            argv=self._command("review", "--submit", change.revision),
            timeout_seconds=self.settings.timeout_seconds,
        )
        try:
            exec_util.run_checked(request, runner=self.runner)
        except exec_util.CommandExecutionError as exc:
            raise ExternalCommandError(
                f"submitting review change {change.number} failed: {exc}",
                recovery_hint="submit the remaining changes by hand, then run 'relcut tag'",
            ) from exc
