"""Apply ordered change units to the release branch one at a time.

Each unit is cherry-picked onto the tip left by the previous one. A failed
cherry-pick or build is recorded and rolled back, and the driver moves on to
the next unit so one bad change does not hide problems further down the
stack.

After each cherry-pick the driver checks whether the unit's known review
change already has the same tree and parent as the local commit. If so the
only differences are author/committer metadata, and the existing change is
reused as is: no build, no upload. When the whole stack is already on the
review system this makes a rerun cheap and idempotent.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .. import log as relcut_log
from ..changes import ChangeUnit, UnitStatus
from ..review import RemoteChange, ReviewLabel
from .models import (
    BatchSummary,
    FailureKind,
    ReproductionReport,
    UnitFailure,
    UnitOutcome,
)
from .ports import BuildValidator, ReviewSystem, VersionControl

IntegratedHook = Callable[[ChangeUnit, RemoteChange], None]


@dataclass(frozen=True)
class DriverPolicy:
    """Release-specific knobs for the driver.

    Attributes:
        message_prefix: Prefix every integrated commit message carries.
        trusted_build_vote: Build-verification vote that makes a
            fingerprint-matched change trusted enough to skip the local build.
        approval_vote: Approval vote below which a warning is recorded.
        verify_untrusted_reuse: Build reused changes that lack a trusted
            build-verification vote.
    """

    message_prefix: str
    trusted_build_vote: int = 1
    approval_vote: int = 2
    verify_untrusted_reuse: bool = False


class IntegrationDriver:
    """Drives each unit through apply, reconcile, build gate and publish."""

    def __init__(
        self,
        *,
        vcs: VersionControl,
        review: ReviewSystem,
        build: BuildValidator,
        policy: DriverPolicy,
        base_ref: str,
        base_commit: str,
        remote: str = "origin",
        on_integrated: IntegratedHook | None = None,
    ) -> None:
        self.vcs = vcs
        self.review = review
        self.build = build
        self.policy = policy
        self.remote = remote
        self.on_integrated = on_integrated
        # Reproduction reports start from whatever the last good unit left.
        self.last_ref = base_ref
        self.last_commit = base_commit

    def run(self, order: Sequence[ChangeUnit], summary: BatchSummary) -> BatchSummary:
        """Integrate ``order`` sequentially, recording every outcome.

        Fatal errors propagate immediately; units not reached keep their
        pending outcome in ``summary``.
        """
        summary.begin(list(order))
        for unit in order:
            summary.record(self.integrate(unit))
        return summary

    def integrate(self, unit: ChangeUnit) -> UnitOutcome:
        relcut_log.info(f"# change {unit.id}")
        if not unit.content_ref:
            relcut_log.warning(f"SKIP {unit.id} - missing commit")
            return self._fail(unit, UnitStatus.SKIPPED, "missing_content", "missing content")
        if unit.rank is None:
            relcut_log.warning(f"SKIP {unit.id} - {unit.content_ref} not in any known history")
            return self._fail(
                unit,
                UnitStatus.SKIPPED,
                "unreachable_content",
                f"commit {unit.content_ref} is not reachable from any fetched reference",
            )

        pre_apply_tip = self.vcs.current_tip()
        if not self.vcs.apply_patch(unit.content_ref):
            report = self._report(unit)
            self.vcs.abort_apply()
            self.vcs.reset_to(pre_apply_tip)
            relcut_log.error(f"cherry-pick of {unit.content_ref} for change {unit.id} failed")
            return self._fail(
                unit, UnitStatus.REJECTED, "apply_conflict", "git cherry-pick failed", report=report
            )
        unit.advance(UnitStatus.APPLIED)
        self.vcs.amend_message(self.policy.message_prefix)

        change = self._reusable_candidate(unit)
        needs_build = change is None
        if change is not None:
            if self._trusted(change):
                relcut_log.info(
                    f"found trusted build vote on review change {change.number}; skipping build"
                )
            else:
                needs_build = self.policy.verify_untrusted_reuse

        built = False
        if needs_build:
            result = self.build.validate()
            built = True
            if not result.ok:
                report = self._report(unit, build_command=self.build.command_text)
                self.vcs.reset_to(pre_apply_tip)
                relcut_log.error(
                    f"{self.build.command_text} failed after applying change {unit.id}"
                )
                outcome = self._fail(
                    unit,
                    UnitStatus.BUILD_FAILED,
                    "build_failed",
                    f"{self.build.command_text} after git cherry-pick failed",
                    report=report,
                    output=result.output,
                )
                outcome.built = True
                return outcome

        if change is None:
            change = self.review.upload_change(self.vcs)
            status = UnitStatus.UPLOADED
            relcut_log.success(f"uploaded change {unit.id} as review change {change.number}")
        else:
            status = UnitStatus.REUSED
            relcut_log.success(f"reusing review change {change.number} for change {unit.id}")

        unit.integrated_ref = change.ref
        unit.candidate = change.number
        unit.advance(status)
        outcome = UnitOutcome(
            unit_id=unit.id,
            status=status,
            integrated_ref=change.ref,
            change_number=change.number,
            built=built,
        )
        if change.vote(ReviewLabel.APPROVAL) < self.policy.approval_vote:
            warning = f"missing approval +{self.policy.approval_vote}"
            relcut_log.warning(f"change {unit.id}: {warning}")
            outcome.warnings.append(warning)

        self.last_ref = change.ref
        self.last_commit = change.revision
        if self.on_integrated is not None:
            self.on_integrated(unit, change)
        return outcome

    def _reusable_candidate(self, unit: ChangeUnit) -> RemoteChange | None:
        """Return the unit's review change when it matches the local commit.

        On a match the checkout is reset to the review change's commit.
        """
        if unit.candidate is None:
            relcut_log.debug(f"no review candidate for change {unit.id}")
            return None
        candidate = self.review.get_change(unit.candidate)
        if candidate is None:
            relcut_log.warning(f"review change {unit.candidate} for change {unit.id} not found")
            return None
        relcut_log.debug(f"check review change {candidate.number} at {candidate.ref}")
        fetched = self.vcs.fetch_revision(candidate.ref)
        local = self.vcs.current_tip()
        if self.vcs.tree_and_parent(fetched) != self.vcs.tree_and_parent(local):
            relcut_log.info(
                f"review change {candidate.number} differs from local commit for change {unit.id}"
            )
            return None
        self.vcs.reset_to(fetched)
        return candidate

    def _trusted(self, change: RemoteChange) -> bool:
        return change.vote(ReviewLabel.BUILD_VERIFICATION) >= self.policy.trusted_build_vote

    def _report(self, unit: ChangeUnit, *, build_command: str | None = None) -> ReproductionReport:
        return ReproductionReport(
            base_ref=self.last_ref,
            tip_commit=self.last_commit,
            source_ref=unit.source_ref,
            content_ref=unit.content_ref,
            remote=self.remote,
            build_command=build_command,
        )

    def _fail(
        self,
        unit: ChangeUnit,
        status: UnitStatus,
        kind: FailureKind,
        message: str,
        *,
        report: ReproductionReport | None = None,
        output: str = "",
    ) -> UnitOutcome:
        unit.advance(status)
        return UnitOutcome(
            unit_id=unit.id,
            status=status,
            failure=UnitFailure(kind=kind, message=message, report=report, output=output),
        )
