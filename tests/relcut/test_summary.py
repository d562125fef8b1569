import json
from pathlib import Path

import pytest

from relcut.changes import UnitStatus
from relcut.driver import BatchSummary, ReproductionReport, UnitFailure, UnitOutcome
from relcut.errors import InvalidInputError
from relcut.finalize import FinalizeResult
from relcut.summary import load_summary, render_summary, write_summary


def _summary() -> BatchSummary:
    summary = BatchSummary(version="go1.9.2")
    summary.record(
        UnitOutcome(
            unit_id="101",
            status=UnitStatus.UPLOADED,
            integrated_ref="refs/changes/01/2001/1",
            change_number=2001,
            warnings=["missing approval +2"],
            built=True,
        )
    )
    summary.record(
        UnitOutcome(
            unit_id="102",
            status=UnitStatus.BUILD_FAILED,
            failure=UnitFailure(
                kind="build_failed",
                message="./make.bash after git cherry-pick failed",
                report=ReproductionReport(
                    base_ref="refs/changes/01/2001/1",
                    tip_commit="abc",
                    source_ref="refs/changes/02/102/4",
                    content_ref="def",
                    build_command="./make.bash",
                ),
                output="undefined: foo",
            ),
            built=True,
        )
    )
    return summary


def test_render_summary_lists_reproduction_steps() -> None:
    lines: list[str] = []

    render_summary(_summary(), say=lines.append)

    assert lines[0] == "Summary for go1.9.2: incomplete"
    assert "- 101: uploaded (review change 2001)" in lines
    assert "    git fetch origin refs/changes/01/2001/1" in lines
    assert "    git cherry-pick def" in lines
    assert "    ./make.bash" in lines
    assert "    undefined: foo" in lines
    assert "warning: 101: missing approval +2" in lines
    assert lines[-1] == "uploads: 1, builds: 2"


def test_render_summary_shows_fatal_error() -> None:
    lines: list[str] = []
    summary = BatchSummary(version="go1.9.2", fatal="tag_exists: go1.9.2 tag already exists")

    render_summary(summary, say=lines.append)

    assert lines[-1] == "FATAL: tag_exists: go1.9.2 tag already exists"


def test_write_summary_exports_json(tmp_path: Path) -> None:
    path = tmp_path / "summary.json"

    write_summary(
        path,
        _summary(),
        finalize=FinalizeResult(version="go1.9.2", tagged=False, pushed=False, detail="x"),
    )

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["complete"] is False
    assert payload["uploads"] == 1
    assert [change["status"] for change in payload["changes"]] == ["uploaded", "build_failed"]
    failure = payload["changes"][1]["failure"]
    assert failure["kind"] == "build_failed"
    assert failure["reproduce"][-1] == "./make.bash"
    assert payload["tag"] == {"tagged": False, "pushed": False, "detail": "x", "submitted": []}


def test_load_summary_reads_back_written_summary(tmp_path: Path) -> None:
    path = tmp_path / "summary.json"
    write_summary(path, _summary())

    recorded = load_summary(path)

    assert recorded is not None
    assert recorded.version == "go1.9.2"
    assert recorded.complete is False
    assert recorded.change_numbers == [2001]


def test_load_summary_missing_file_returns_none(tmp_path: Path) -> None:
    assert load_summary(tmp_path / "summary.json") is None


def test_load_summary_rejects_malformed_file(tmp_path: Path) -> None:
    path = tmp_path / "summary.json"
    path.write_text(json.dumps({"complete": "maybe"}), encoding="utf-8")

    with pytest.raises(InvalidInputError):
        load_summary(path)
