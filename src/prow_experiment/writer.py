"""Write generated ProwJobs for pickup by the submitter."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Sequence

import yaml

from . import log
from .models import ProwJob


def default_output_dir() -> Path:
    return Path(tempfile.gettempdir())


def render_job(job: ProwJob) -> str:
    """Serialize a ProwJob to YAML the way the cluster expects it."""
    payload = job.model_dump(mode="json", by_alias=True, exclude_none=True)
    return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False)


def job_filename(job: ProwJob) -> str:
    return f"{job.name}.yaml"


def write_jobs(
    jobs: Sequence[ProwJob],
    output_dir: Path | None = None,
    *,
    logger: log.Logger | None = None,
) -> list[Path]:
    """Write one YAML file per job, named after the job.

    A job that cannot be written is logged; the remaining jobs are still
    written.

    Returns:
        Paths of the files that were written.
    """
    logger = logger or log.get_logger("writer")
    target_dir = output_dir if output_dir is not None else default_output_dir()
    written: list[Path] = []
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error(f"cannot create output directory {target_dir}: {exc}")
        return written
    for job in jobs:
        path = target_dir / job_filename(job)
        try:
            path.write_text(render_job(job), encoding="utf-8")
        except OSError as exc:
            logger.error(f"failed to write job {job.name} to {path}: {exc}")
            continue
        logger.debug(f"wrote job {job.spec.job} to {path}")
        written.append(path)
    return written
