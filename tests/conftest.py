# ruff: noqa: E402

import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import prow_experiment.log as log
from tests.prow_experiment.helpers import OriginRepo

DOCTEST_MODULES = {
    ROOT / "src" / "prow_experiment" / "__init__.py",
    ROOT / "src" / "prow_experiment" / "git.py",
    ROOT / "src" / "prow_experiment" / "jobs.py",
    ROOT / "src" / "prow_experiment" / "log.py",
    ROOT / "src" / "prow_experiment" / "settings.py",
    ROOT / "src" / "prow_experiment" / "workspace.py",
}


@pytest.fixture(autouse=True)
def _log_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(log, "_configured_level", log.LogLevel.TRACE)
    monkeypatch.setattr(log, "_no_color_override", True)


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None


@pytest.fixture
def origin_repo(tmp_path: Path) -> OriginRepo:
    repo = OriginRepo(tmp_path / "origin")
    repo.init()
    return repo
