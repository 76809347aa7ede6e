"""Reduce base and head job configurations to new or changed jobs.

Squashing works at three levels: configs keyed by job-config path, presubmit
maps keyed by ``org/repo``, and job lists matched by job name. A head job is
kept when no base job has its name, or when its payload (everything but the
name) differs from a same-named base job. Inputs are never mutated.
"""

from __future__ import annotations

import json
from typing import Mapping, Sequence

from .models import Config, Presubmit

PresubmitMap = Mapping[str, Sequence[Presubmit]]


def job_payload(job: Presubmit) -> str:
    """Return the canonical serialized payload used for change detection."""
    data = job.model_dump(mode="json", exclude={"name"})
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def payloads_equal(left: Presubmit, right: Presubmit) -> bool:
    return job_payload(left) == job_payload(right)


def squash_presubmits(
    base_jobs: Sequence[Presubmit], head_jobs: Sequence[Presubmit]
) -> list[Presubmit]:
    """Return head jobs that are new or changed relative to ``base_jobs``.

    A head job is compared with every same-named base job and is included
    once per differing match, so duplicated base names can duplicate output.
    """
    squashed: list[Presubmit] = []
    for head_job in head_jobs:
        is_new = True
        head_payload = job_payload(head_job)
        for base_job in base_jobs:
            if base_job.name != head_job.name:
                continue
            is_new = False
            if job_payload(base_job) == head_payload:
                continue
            squashed.append(head_job)
        if is_new:
            squashed.append(head_job)
    return squashed


def squash_presubmit_configs(
    base_presubmits: PresubmitMap, head_presubmits: PresubmitMap
) -> dict[str, list[Presubmit]]:
    """Squash per-repository job lists.

    Repositories missing from the base keep their whole head list.
    Repositories that squash to nothing are left out.
    """
    squashed: dict[str, list[Presubmit]] = {}
    for repo, head_jobs in head_presubmits.items():
        base_jobs = base_presubmits.get(repo)
        if base_jobs is None:
            jobs = list(head_jobs)
        else:
            jobs = squash_presubmits(base_jobs, head_jobs)
        if jobs:
            squashed[repo] = jobs
    return squashed


def squash_configs(
    base_configs: Mapping[str, Config], head_configs: Mapping[str, Config]
) -> list[Config]:
    """Squash configs loaded from the same paths at base and head.

    A path without a base counterpart keeps the whole head config. A config
    with no new or changed jobs left is omitted from the result.
    """
    configs: list[Config] = []
    for path, head_config in head_configs.items():
        base_config = base_configs.get(path)
        if base_config is None:
            configs.append(head_config)
            continue
        presubmits = squash_presubmit_configs(base_config.presubmits, head_config.presubmits)
        if not presubmits:
            continue
        configs.append(head_config.model_copy(update={"presubmits": presubmits}))
    return configs


def squash_pipeline(
    base_configs: Mapping[str, Config],
    head_configs: Mapping[str, Config],
    added_configs: Mapping[str, Config],
) -> list[Config]:
    """Squash modified configs, then append configs from added paths verbatim."""
    configs = squash_configs(base_configs, head_configs)
    configs.extend(added_configs.values())
    return configs
