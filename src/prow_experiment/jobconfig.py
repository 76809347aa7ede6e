"""Load CI configuration and job configuration files."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Config


class ConfigLoadError(ValueError):
    """Raised when a CI config or job config file cannot be loaded."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


def _read_yaml(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ConfigLoadError(path, f"cannot read file: {exc}") from exc
    try:
        payload = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(path, f"invalid YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigLoadError(path, "expected a mapping at the top level")
    return payload


def _check_duplicates(path: Path, config: Config) -> None:
    for repo, jobs in config.presubmits.items():
        seen: set[str] = set()
        for job in jobs:
            if job.name in seen:
                raise ConfigLoadError(
                    path, f"duplicated presubmit job {job.name!r} for {repo}"
                )
            seen.add(job.name)


def load_config(ci_config_path: Path, job_config_path: Path) -> Config:
    """Load the CI config together with one job-config file.

    Args:
        ci_config_path: Path to the CI (Prow) ``config.yaml``.
        job_config_path: Path to a job-config file declaring ``presubmits``.

    Returns:
        Parsed ``Config``. Settings come from the CI config; presubmits come
        only from the job-config file.

    Raises:
        ConfigLoadError: When either file is missing, malformed, or invalid.
    """
    settings = _read_yaml(ci_config_path)
    jobs = _read_yaml(job_config_path)
    payload = {
        key: settings[key]
        for key in ("prowjob_namespace", "pod_namespace")
        if key in settings
    }
    payload["presubmits"] = jobs.get("presubmits") or {}
    try:
        config = Config.model_validate(payload)
    except ValidationError as exc:
        raise ConfigLoadError(job_config_path, f"invalid job config: {exc}") from exc
    _check_duplicates(job_config_path, config)
    return config
