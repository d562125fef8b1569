# ruff: noqa: E402

import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import relcut.log as relcut_log

DOCTEST_MODULES = {
    ROOT / "src" / "relcut" / "build.py",
    ROOT / "src" / "relcut" / "changes.py",
    ROOT / "src" / "relcut" / "checkout.py",
    ROOT / "src" / "relcut" / "config.py",
    ROOT / "src" / "relcut" / "git.py",
    ROOT / "src" / "relcut" / "io.py",
    ROOT / "src" / "relcut" / "models.py",
    ROOT / "src" / "relcut" / "paths.py",
    ROOT / "src" / "relcut" / "pipeline.py",
    ROOT / "src" / "relcut" / "ranking.py",
    ROOT / "src" / "relcut" / "review.py",
    ROOT / "src" / "relcut" / "state.py",
    ROOT / "src" / "relcut" / "summary.py",
}


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELCUT_WORK_DIR", str(tmp_path / "work"))
    monkeypatch.delenv("RELCUT_TRACE", raising=False)
    monkeypatch.delenv("RELCUT_LOG_LEVEL", raising=False)
    monkeypatch.setattr(relcut_log, "_configured_level", None)
    monkeypatch.setattr(relcut_log, "_no_color_override", None)


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
