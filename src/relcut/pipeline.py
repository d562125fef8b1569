"""Release integration run: rank, order, integrate and optionally tag.

The service owns the sequencing of one run over a release work directory.
Collaborator construction is injectable so tests can substitute fakes for the
checkout, review system and build.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict

from . import checkout as checkout_mod
from . import config as config_mod
from . import exec as exec_util
from . import io as relcut_io
from . import log as relcut_log
from . import paths, telemetry
from .build import CommandBuild
from .changes import ChangeUnit, load_batch
from .driver import BatchSummary, DriverPolicy, IntegrationDriver
from .driver.ports import BuildValidator, ReviewSystem
from .errors import FatalError, InvalidInputError, TagExistsError
from .finalize import FinalizeResult, FinalSubmission, finalize_release
from .models import RelcutConfig
from .ordering import resolve_order
from .ranking import apply_ranks, rank_changes, ranking_references
from .review import GerritReview, RemoteChange
from .service import BaseService
from .state import RunState, load_state, save_state
from .summary import load_summary, write_summary

RunMode = Literal["plan", "run"]
PrepareCheckout = Callable[..., checkout_mod.WorkingBranch]


class ReleaseRunRequest(BaseModel):
    """Input contract for one release run.

    Attributes:
        config: Validated relcut configuration.
        batch_path: Curated change batch file.
        mode: ``plan`` stops after ordering; ``run`` integrates.
        tag: Tag and push the release after a complete run.
    """

    config: RelcutConfig
    batch_path: Path
    mode: RunMode = "run"
    tag: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)


@dataclass
class ReleaseRunOutcome:
    summary: BatchSummary
    order: list[ChangeUnit] = field(default_factory=list)
    unreachable: list[str] = field(default_factory=list)
    finalize: FinalizeResult | None = None


def fetch_refspecs(references: list[str], namespace: str) -> list[str]:
    """Map each reference to a namespaced local ref.

    Example:
        >>> fetch_refspecs(["master", "refs/changes/45/12345/2"], "review/")
        ['master:review/master', 'refs/changes/45/12345/2:review/refs/changes/45/12345/2']
    """
    return [f"{ref}:{namespace}{ref}" for ref in references]


def _default_review(
    cfg: RelcutConfig, runner: exec_util.CommandRunner | None
) -> ReviewSystem:
    return GerritReview(cfg.review, cfg.release.branch or "", runner=runner)


def _default_build(
    cfg: RelcutConfig,
    work: checkout_mod.WorkingBranch,
    runner: exec_util.CommandRunner | None,
) -> BuildValidator:
    return CommandBuild(work.path, cfg.build, runner=runner)


class ReleaseRunService(BaseService[ReleaseRunRequest, ReleaseRunOutcome]):
    """Run one release batch end to end."""

    def __init__(
        self,
        *,
        prepare: PrepareCheckout = checkout_mod.prepare_checkout,
        inspect: PrepareCheckout = checkout_mod.prepare_mirror,
        make_review: Callable[..., ReviewSystem] = _default_review,
        make_build: Callable[..., BuildValidator] = _default_build,
        runner: exec_util.CommandRunner | None = None,
        say: Callable[[str], None] = relcut_io.say,
    ) -> None:
        self._prepare = prepare
        self._inspect = inspect
        self._make_review = make_review
        self._make_build = make_build
        self._runner = runner
        self._say = say
        self.summary: BatchSummary | None = None
        self.release_root: Path | None = None

    def _run(self, request: ReleaseRunRequest) -> ReleaseRunOutcome:
        cfg = request.config
        version = cfg.release.version
        root = config_mod.release_root(cfg)
        summary = BatchSummary(version=version)
        self.summary = summary
        self.release_root = root
        timings: list[tuple[str, float]] = []
        trace = telemetry.trace_enabled()

        def step(label: str) -> Callable[[str | None], None]:
            return telemetry.step(
                label, timings=timings, trace=trace, say=self._say, log_debug=relcut_log.debug
            )

        finish = step("load batch")
        units = load_batch(request.batch_path)
        finish(f"{len(units)} changes")

        if request.mode == "plan":
            finish = step("refresh mirror")
            work = self._inspect(cfg, root, runner=self._runner)
        else:
            finish = step("prepare checkout")
            work = self._prepare(cfg, root, runner=self._runner)
        finish(str(work.path))

        if request.mode == "run" and work.tag_exists(version):
            raise TagExistsError(version)

        finish = step("rank changes")
        namespace = cfg.project.review_namespace
        references = ranking_references(
            units,
            upstream_ref=cfg.project.upstream_branch,
            release_ref=cfg.release.branch or "",
        )
        work.fetch_refs(fetch_refspecs(references, namespace))
        ranks = rank_changes(units, references, lambda ref: work.commit_history(namespace + ref))
        unreachable = apply_ranks(units, ranks)
        for unit_id in unreachable:
            relcut_log.warning(f"change {unit_id}: commit not found in any fetched history")
        finish(f"{len(references)} references")

        finish = step("resolve order")
        order = resolve_order(units)
        finish(" ".join(unit.id for unit in order))

        state_file = paths.state_path(root)
        state = load_state(state_file, version)
        seeded = state.seed(units)
        if seeded:
            relcut_log.info(f"seeded {seeded} review candidates from {state_file}")

        outcome = ReleaseRunOutcome(summary=summary, order=order, unreachable=unreachable)
        if request.mode == "plan":
            summary.begin(order)
            telemetry.report_timings(timings, trace=trace, say=self._say)
            return outcome

        review = self._make_review(cfg, self._runner)
        integrated: list[RemoteChange] = []
        driver = IntegrationDriver(
            vcs=work,
            review=review,
            build=self._make_build(cfg, work, self._runner),
            policy=DriverPolicy(
                message_prefix=cfg.release.message_prefix or "",
                trusted_build_vote=cfg.review.trusted_build_vote,
                approval_vote=cfg.review.approval_vote,
                verify_untrusted_reuse=cfg.review.verify_untrusted_reuse,
            ),
            base_ref=cfg.release.branch or "",
            base_commit=f"{cfg.project.remote}/{cfg.release.branch}",
            remote=cfg.project.remote,
            on_integrated=_state_recorder(state, state_file, integrated),
        )
        finish = step("integrate changes")
        driver.run(order, summary)
        finish(f"{summary.uploads} uploads, {summary.builds} builds")

        if request.tag:
            if summary.complete:
                finish = step("tag release")
                final: FinalSubmission | None = None
                if cfg.release.final:
                    final = FinalSubmission(
                        review=review, branch=cfg.release.branch or "", changes=tuple(integrated)
                    )
                outcome.finalize = finalize_release(work, version, final=final)
                finish(None)
                if not outcome.finalize.tagged:
                    summary.notes.append(outcome.finalize.detail)
            else:
                summary.notes.append(f"not tagging {version}: batch is incomplete")
                relcut_log.warning(f"not tagging {version}: batch is incomplete")

        write_summary(paths.summary_path(root), summary, finalize=outcome.finalize)
        telemetry.report_timings(timings, trace=trace, say=self._say)
        return outcome

    def _handle_failure(self, error: FatalError) -> ReleaseRunOutcome:
        if self.summary is not None:
            self.summary.fatal = f"{error.code}: {error.message}"
            if self.release_root is not None and self.release_root.exists():
                write_summary(paths.summary_path(self.release_root), self.summary)
        raise error


def _state_recorder(
    state: RunState, path: Path, integrated: list[RemoteChange]
) -> Callable[[ChangeUnit, RemoteChange], None]:
    def record(unit: ChangeUnit, change: RemoteChange) -> None:
        state.remember(unit.id, change.number)
        save_state(path, state)
        integrated.append(change)

    return record


def tag_release(
    cfg: RelcutConfig,
    *,
    runner: exec_util.CommandRunner | None = None,
    review: ReviewSystem | None = None,
) -> FinalizeResult:
    """Tag the work checkout left by a previous complete run.

    The run's ``summary.json`` must report a complete batch for the same
    version. A final release resubmits the recorded review changes first.
    """
    version = cfg.release.version
    root = config_mod.release_root(cfg)
    work_path = paths.checkout_dir(root)
    if not work_path.exists():
        raise InvalidInputError(
            f"no work checkout at {work_path}",
            recovery_hint="integrate the batch with 'relcut run' first",
        )
    summary_file = paths.summary_path(root)
    recorded = load_summary(summary_file)
    if recorded is None:
        raise InvalidInputError(
            f"no run summary at {summary_file}",
            recovery_hint="integrate the batch with 'relcut run' first",
        )
    if recorded.version != version:
        raise InvalidInputError(
            f"run summary at {summary_file} is for {recorded.version}, not {version}"
        )
    if not recorded.complete or recorded.fatal:
        raise InvalidInputError(
            f"not tagging {version}: the last run did not integrate the whole batch",
            recovery_hint="fix the reported changes and rerun 'relcut run'",
        )

    work = checkout_mod.WorkingBranch(
        path=work_path, remote=cfg.project.remote, git_path=cfg.git.path, runner=runner
    )
    final: FinalSubmission | None = None
    if cfg.release.final:
        if review is None:
            review = _default_review(cfg, runner)
        changes: list[RemoteChange] = []
        for number in recorded.change_numbers:
            change = review.get_change(number)
            if change is None:
                raise InvalidInputError(f"review change {number} from {summary_file} not found")
            changes.append(change)
        final = FinalSubmission(
            review=review, branch=cfg.release.branch or "", changes=tuple(changes)
        )
    return finalize_release(work, version, final=final)
