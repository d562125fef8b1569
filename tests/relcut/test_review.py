import json

import pytest

from relcut.errors import ExternalCommandError, RemoteLookupError
from relcut.models import ReviewSection
from relcut.review import (
    GerritApprovalBoundary,
    GerritReview,
    RemoteChange,
    ReviewLabel,
    label_votes,
)
from tests.relcut.helpers import FakeRunner, FakeVcs, FakeWorld, failed_result, ok_result

QUERY_COMMAND = ["ssh", "-p", "29418", "go-review.googlesource.com", "gerrit"]
LABELS = {"TryBot-Result": ReviewLabel.BUILD_VERIFICATION, "Code-Review": ReviewLabel.APPROVAL}


def _change_line(number: int, revision: str, approvals: list[dict]) -> str:
    return json.dumps(
        {
            "project": "go",
            "branch": "release-branch.go1.9",
            "number": str(number),
            "currentPatchSet": {
                "number": "3",
                "revision": revision,
                "ref": f"refs/changes/{number % 100:02d}/{number}/3",
                "approvals": approvals,
            },
        }
    )


STATS_LINE = json.dumps({"type": "stats", "rowCount": 1})


def _review(runner: FakeRunner, **overrides: object) -> GerritReview:
    settings = ReviewSection(query_command=QUERY_COMMAND, **overrides)
    return GerritReview(settings, "release-branch.go1.9", runner=runner, retry_backoff_seconds=0)


def test_label_votes_negative_vote_dominates() -> None:
    approvals = [
        GerritApprovalBoundary(type="Code-Review", value=2),
        GerritApprovalBoundary(type="Code-Review", value=-1),
        GerritApprovalBoundary(type="TryBot-Result", value=1),
        GerritApprovalBoundary(type="Verified", value=-2),
    ]

    assert label_votes(approvals, LABELS) == {
        ReviewLabel.APPROVAL: -1,
        ReviewLabel.BUILD_VERIFICATION: 1,
    }


def test_approval_values_are_parsed_and_clamped() -> None:
    assert GerritApprovalBoundary(type="Code-Review", value=" +2 ").value == 2
    assert GerritApprovalBoundary(type="Code-Review", value=5).value == 2


def test_get_change_parses_current_patch_set() -> None:
    line = _change_line(
        12345,
        "abc123",
        [{"type": "TryBot-Result", "value": "1"}, {"type": "Code-Review", "value": "2"}],
    )
    runner = FakeRunner([ok_result(f"{line}\n{STATS_LINE}\n")])

    change = _review(runner).get_change(12345)

    assert change is not None
    assert change.number == 12345
    assert change.revision == "abc123"
    assert change.ref == "refs/changes/45/12345/3"
    assert change.vote(ReviewLabel.BUILD_VERIFICATION) == 1
    assert change.vote(ReviewLabel.APPROVAL) == 2
    assert runner.requests[0].argv == (
        *QUERY_COMMAND,
        "query",
        "--format=JSON",
        "--current-patch-set",
        "change:12345",
    )


def test_find_change_by_commit_returns_none_when_no_rows() -> None:
    runner = FakeRunner([ok_result(f"{STATS_LINE}\n")])

    assert _review(runner).find_change_by_commit("abc123") is None
    assert runner.requests[0].argv[-1] == "commit:abc123"


def test_custom_label_names_map_to_review_labels() -> None:
    line = _change_line(7, "abc", [{"type": "Verified", "value": "1"}])
    runner = FakeRunner([ok_result(line)])

    change = _review(runner, build_verification_label="Verified").get_change(7)

    assert change is not None
    assert change.vote(ReviewLabel.BUILD_VERIFICATION) == 1


def test_query_retries_retryable_failures() -> None:
    line = _change_line(7, "abc", [])
    runner = FakeRunner([failed_result("ssh: Connection reset by peer"), ok_result(line)])

    change = _review(runner).get_change(7)

    assert change is not None
    assert len(runner.requests) == 2


def test_query_failure_is_fatal() -> None:
    runner = FakeRunner([failed_result("fatal: permission denied")])

    with pytest.raises(ExternalCommandError) as exc_info:
        _review(runner).get_change(7)

    assert "permission denied" in exc_info.value.message
    assert len(runner.requests) == 1


def test_query_requires_configured_command() -> None:
    review = GerritReview(ReviewSection(), "release-branch.go1.9", runner=FakeRunner())

    with pytest.raises(ExternalCommandError) as exc_info:
        review.get_change(7)

    assert exc_info.value.recovery_hint


def test_upload_change_pushes_and_looks_up_tip() -> None:
    world = FakeWorld()
    vcs = FakeVcs(world)
    line = _change_line(12345, "base", [])
    runner = FakeRunner([ok_result(line)])

    change = _review(runner).upload_change(vcs)

    assert vcs.pushed == ["HEAD:refs/for/release-branch.go1.9%l=Run-TryBot+1"]
    assert change.number == 12345
    assert runner.requests[0].argv[-1] == "commit:base"


def test_upload_change_without_lookup_result_is_fatal() -> None:
    vcs = FakeVcs(FakeWorld())
    runner = FakeRunner([ok_result(STATS_LINE)])

    with pytest.raises(RemoteLookupError) as exc_info:
        _review(runner, upload_options=[]).upload_change(vcs)

    assert vcs.pushed == ["HEAD:refs/for/release-branch.go1.9"]
    assert exc_info.value.commit == "base"


def test_submit_change_submits_current_revision() -> None:
    runner = FakeRunner([ok_result()])
    change = RemoteChange(number=12345, revision="abc123", ref="refs/changes/45/12345/3")

    _review(runner).submit_change(change)

    assert runner.requests[0].argv == (*QUERY_COMMAND, "review", "--submit", "abc123")


def test_submit_change_failure_is_fatal() -> None:
    runner = FakeRunner([failed_result("fatal: change is new but parent is not merged")])
    change = RemoteChange(number=12345, revision="abc123", ref="refs/changes/45/12345/3")

    with pytest.raises(ExternalCommandError) as exc_info:
        _review(runner).submit_change(change)

    assert "12345" in exc_info.value.message
    assert exc_info.value.recovery_hint
