from __future__ import annotations

from pathlib import Path

from prow_experiment import jobconfig, loader
from prow_experiment.models import Config, Presubmit


def test_load_configs_keys_by_relative_path(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("pod_namespace: pods\n", encoding="utf-8")
    (tmp_path / "jobs").mkdir()
    (tmp_path / "jobs" / "a.yaml").write_text(
        "presubmits:\n  org/repo:\n  - name: unit\n", encoding="utf-8"
    )

    snapshot = loader.load_configs(tmp_path, "config.yaml", ["jobs/a.yaml"])

    assert list(snapshot) == ["jobs/a.yaml"]
    assert snapshot["jobs/a.yaml"].path == "jobs/a.yaml"
    assert snapshot["jobs/a.yaml"].pod_namespace == "pods"


def test_load_configs_skips_failures_and_keeps_going(tmp_path: Path) -> None:
    calls: list[tuple[Path, Path]] = []

    def fake_load(ci_config: Path, job_config: Path) -> Config:
        calls.append((ci_config, job_config))
        if job_config.name == "broken.yaml":
            raise jobconfig.ConfigLoadError(job_config, "invalid YAML")
        return Config(presubmits={"org/repo": [Presubmit(name=job_config.stem)]})

    snapshot = loader.load_configs(
        tmp_path,
        "prow/config.yaml",
        ["jobs/broken.yaml", "jobs/ok.yaml"],
        load=fake_load,
    )

    assert list(snapshot) == ["jobs/ok.yaml"]
    assert [job.name for job in snapshot["jobs/ok.yaml"].presubmits["org/repo"]] == ["ok"]
    assert calls == [
        (tmp_path / "prow/config.yaml", tmp_path / "jobs/broken.yaml"),
        (tmp_path / "prow/config.yaml", tmp_path / "jobs/ok.yaml"),
    ]


def test_load_configs_missing_file_is_skipped(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("{}\n", encoding="utf-8")

    assert loader.load_configs(tmp_path, "config.yaml", ["jobs/gone.yaml"]) == {}


def test_load_configs_undecodable_file_does_not_abort_batch(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("{}\n", encoding="utf-8")
    (tmp_path / "jobs").mkdir()
    (tmp_path / "jobs" / "bad.yaml").write_bytes(b"presubmits: \xff\xfe")
    (tmp_path / "jobs" / "good.yaml").write_text(
        "presubmits:\n  org/repo:\n  - name: unit\n", encoding="utf-8"
    )

    snapshot = loader.load_configs(
        tmp_path, "config.yaml", ["jobs/bad.yaml", "jobs/good.yaml"]
    )

    assert list(snapshot) == ["jobs/good.yaml"]
