"""Tag and publish the integrated release branch.

A final release first submits the integrated review changes, bottom of the
stack first, and syncs the checkout to the branch tip the review system
produced. Release candidates are tagged straight from the integrated stack.
"""

from __future__ import annotations

from dataclasses import dataclass

from . import log as relcut_log
from .driver.ports import ReviewSystem, VersionControl
from .review import RemoteChange


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of tagging one release version."""

    version: str
    tagged: bool
    pushed: bool
    detail: str = ""
    submitted: tuple[int, ...] = ()


@dataclass(frozen=True)
class FinalSubmission:
    """Review changes to submit before a final release is tagged.

    Attributes:
        review: Review system the changes live on.
        branch: Release branch the changes land on.
        changes: Integrated changes in stack order.
    """

    review: ReviewSystem
    branch: str
    changes: tuple[RemoteChange, ...]


def submit_release(vcs: VersionControl, submission: FinalSubmission) -> str:
    """Submit every integrated change and reset the checkout to the new branch tip."""
    for change in submission.changes:
        relcut_log.info(f"submitting review change {change.number}")
        submission.review.submit_change(change)
    tip = vcs.fetch_revision(submission.branch)
    vcs.reset_to(tip)
    relcut_log.info(f"synced to {submission.branch} at {tip}")
    return tip


def finalize_release(
    vcs: VersionControl,
    version: str,
    *,
    final: FinalSubmission | None = None,
) -> FinalizeResult:
    """Tag the current tip as ``version`` and push the tag.

    A failing ``git tag`` (typically because the tag already exists) is
    reported in the result and nothing is pushed. A failing submit or push
    raises.
    """
    submitted: tuple[int, ...] = ()
    if final is not None:
        if vcs.tag_exists(version):
            message = f"{version} tag already exists; not submitting"
            relcut_log.error(message)
            return FinalizeResult(version=version, tagged=False, pushed=False, detail=message)
        submit_release(vcs, final)
        submitted = tuple(change.number for change in final.changes)
    ok, detail = vcs.tag(version)
    if not ok:
        message = f"git tag {version} failed"
        if detail.strip():
            message = f"{message}:\n{detail.strip()}"
        relcut_log.error(message)
        return FinalizeResult(
            version=version, tagged=False, pushed=False, detail=message, submitted=submitted
        )
    vcs.push(f"refs/tags/{version}")
    relcut_log.success(f"tagged and pushed {version}")
    return FinalizeResult(version=version, tagged=True, pushed=True, submitted=submitted)
