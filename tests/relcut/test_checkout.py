from pathlib import Path

import pytest

from relcut import checkout
from relcut.errors import ExternalCommandError
from relcut.models import RelcutConfig
from tests.relcut.helpers import FakeRunner, failed_result, ok_result


def _config(tmp_path: Path) -> RelcutConfig:
    return RelcutConfig.model_validate(
        {
            "project": {"repo_url": "https://go.googlesource.com/go"},
            "release": {"version": "go1.9.2"},
            "work_dir": str(tmp_path),
        }
    )


def _commands(runner: FakeRunner) -> list[tuple[str, ...]]:
    return [request.argv for request in runner.requests]


def test_prepare_checkout_clones_mirror_on_first_run(tmp_path: Path) -> None:
    runner = FakeRunner()
    root = tmp_path / "go1.9.2"

    work = checkout.prepare_checkout(_config(tmp_path), root, runner=runner)

    mirror = str(root / "gitmirror")
    gitwork = str(root / "gitwork")
    assert work.path == root / "gitwork"
    assert _commands(runner) == [
        ("git", "clone", "https://go.googlesource.com/go", mirror),
        ("git", "-C", mirror, "config", "gc.auto", "0"),
        ("git", "-C", mirror, "fetch", "origin", "release-branch.go1.9"),
        (
            "git",
            "clone",
            "--reference",
            mirror,
            "-b",
            "release-branch.go1.9",
            "https://go.googlesource.com/go",
            gitwork,
        ),
        ("git", "-C", gitwork, "config", "gc.auto", "0"),
        ("git", "-C", gitwork, "checkout", "-B", "relwork"),
    ]


def test_prepare_checkout_refreshes_mirror_and_replaces_work_clone(tmp_path: Path) -> None:
    runner = FakeRunner()
    root = tmp_path / "go1.9.2"
    (root / "gitmirror").mkdir(parents=True)
    stale = root / "gitwork"
    stale.mkdir()
    (stale / "leftover").write_text("x", encoding="utf-8")

    checkout.prepare_checkout(_config(tmp_path), root, runner=runner)

    commands = _commands(runner)
    assert commands[0] == ("git", "-C", str(root / "gitmirror"), "fetch", "origin", "master")
    assert commands[1][-1] == "release-branch.go1.9"
    assert not stale.exists()


def test_amend_message_is_skipped_when_prefix_present(tmp_path: Path) -> None:
    runner = FakeRunner([ok_result("[release-branch.go1.9] net: fix\n")])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    work.amend_message("[release-branch.go1.9] ")

    assert len(runner.requests) == 1


def test_amend_message_adds_prefix(tmp_path: Path) -> None:
    runner = FakeRunner([ok_result("net: fix\n\nFixes #1\n")])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    work.amend_message("[release-branch.go1.9] ")

    assert runner.requests[1].input == "[release-branch.go1.9] net: fix\n\nFixes #1\n"


def test_fetch_revision_resolves_fetch_head(tmp_path: Path) -> None:
    runner = FakeRunner([ok_result(), ok_result("abc123\n")])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    assert work.fetch_revision("refs/changes/45/12345/3") == "abc123"
    assert runner.requests[0].argv[-3:] == ("fetch", "origin", "refs/changes/45/12345/3")
    assert "FETCH_HEAD^{commit}" in runner.requests[1].argv


def test_apply_patch_reports_conflict(tmp_path: Path) -> None:
    runner = FakeRunner([failed_result("error: could not apply abc")])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    assert work.apply_patch("abc") is False


def test_tag_reports_failure_detail(tmp_path: Path) -> None:
    runner = FakeRunner([failed_result("fatal: tag 'go1.9.2' already exists")])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    assert work.tag("go1.9.2") == (False, "fatal: tag 'go1.9.2' already exists")


def test_prepare_mirror_leaves_integrated_work_checkout_alone(tmp_path: Path) -> None:
    runner = FakeRunner()
    root = tmp_path / "go1.9.2"
    (root / "gitmirror").mkdir(parents=True)
    integrated = root / "gitwork"
    integrated.mkdir()
    (integrated / "INTEGRATED_STACK").write_text("x", encoding="utf-8")

    mirror = checkout.prepare_mirror(_config(tmp_path), root, runner=runner)

    assert mirror.path == root / "gitmirror"
    assert (integrated / "INTEGRATED_STACK").exists()
    assert all(str(integrated) not in request.argv for request in runner.requests)


def test_current_tip_without_head_is_fatal(tmp_path: Path) -> None:
    runner = FakeRunner([failed_result("fatal: Needed a single revision")])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    with pytest.raises(ExternalCommandError):
        work.current_tip()


def test_fetch_revision_without_fetch_head_is_fatal(tmp_path: Path) -> None:
    runner = FakeRunner([ok_result(), failed_result()])
    work = checkout.WorkingBranch(path=tmp_path, runner=runner)

    with pytest.raises(ExternalCommandError):
        work.fetch_revision("refs/changes/45/12345/3")
