"""Turn squashed job definitions into pull-request-scoped ProwJobs."""

from __future__ import annotations

import copy
import datetime as dt
import uuid
from typing import Callable, Sequence

from . import log
from .models import (
    Config,
    ObjectMeta,
    Presubmit,
    ProwJob,
    ProwJobSpec,
    ProwJobStatus,
    Pull,
    PullRequestEvent,
    Refs,
)
from .services.errors import ValidationFailedError

DEFAULT_EXTRA_REF_BASE = "refs/heads/master"
GITHUB_URL = "https://github.com"

CREATED_BY_PROW_LABEL = "created-by-prow"
PROW_JOB_TYPE_LABEL = "prow.k8s.io/type"
PROW_JOB_NAME_LABEL = "prow.k8s.io/job"
ORG_LABEL = "prow.k8s.io/refs.org"
REPO_LABEL = "prow.k8s.io/refs.repo"
PULL_LABEL = "prow.k8s.io/refs.pull"
EVENT_GUID_LABEL = "event-GUID"
PROW_JOB_ANNOTATION = "prow.k8s.io/job"

_MAX_LABEL_VALUE_LENGTH = 63


def split_repo(identifier: str) -> tuple[str, str]:
    """Split an ``org/repo`` identifier.

    Args:
        identifier: Repository identifier with exactly one ``/``.

    Returns:
        ``(org, repo)`` tuple.

    Raises:
        ValidationFailedError: When the identifier does not have exactly two
            non-empty parts.

    Example:
        >>> split_repo("kubernetes/test-infra")
        ('kubernetes', 'test-infra')
    """
    parts = identifier.split("/")
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise ValidationFailedError(
            f"invalid repository identifier {identifier!r}",
            recovery_hint="use the org/repo form",
        )
    return parts[0], parts[1]


def _label_value(value: str) -> str:
    return value[:_MAX_LABEL_VALUE_LENGTH]


def _utc_now() -> str:
    now = dt.datetime.now(tz=dt.timezone.utc).replace(microsecond=0)
    return now.isoformat().replace("+00:00", "Z")


def pull_request_refs(event: PullRequestEvent) -> Refs:
    """Build the primary refs of a job from the pull request."""
    pr = event.pull_request
    repo = pr.base_repo
    pull = Pull(
        number=pr.number,
        author=pr.user.login,
        sha=pr.head.sha,
        title=pr.title or None,
        ref=pr.head.ref,
        link=pr.html_url or None,
        commit_link=f"{pr.html_url}/commits/{pr.head.sha}" if pr.html_url else None,
        author_link=pr.user.html_url or None,
    )
    return Refs(
        org=repo.owner.login,
        repo=repo.name,
        repo_link=repo.html_url,
        base_ref=pr.base.ref,
        base_sha=pr.base.sha or None,
        base_link=f"{repo.html_url}/commit/{pr.base.sha}" if pr.base.sha else None,
        pulls=[pull],
    )


def new_presubmit(
    event: PullRequestEvent,
    job: Presubmit,
    config: Config,
    *,
    name_factory: Callable[[], str] | None = None,
    now: Callable[[], str] | None = None,
) -> ProwJob:
    """Instantiate a presubmit job definition for the pull request.

    The event GUID is attached as a label so the job can be correlated with
    the webhook delivery that produced it.
    """
    refs = pull_request_refs(event)
    labels = dict(job.labels)
    labels.update(
        {
            CREATED_BY_PROW_LABEL: "true",
            PROW_JOB_TYPE_LABEL: "presubmit",
            PROW_JOB_NAME_LABEL: _label_value(job.name),
            ORG_LABEL: _label_value(refs.org),
            REPO_LABEL: _label_value(refs.repo),
            PULL_LABEL: str(event.pull_request.number),
        }
    )
    if event.guid:
        labels[EVENT_GUID_LABEL] = _label_value(event.guid)
    annotations = dict(job.annotations)
    annotations[PROW_JOB_ANNOTATION] = job.name

    spec = ProwJobSpec(
        agent=job.agent,
        cluster=job.cluster,
        namespace=job.namespace or config.pod_namespace,
        job=job.name,
        refs=refs,
        extra_refs=[ref.model_copy(deep=True) for ref in job.extra_refs],
        report=not job.skip_report,
        context=job.context,
        rerun_command=job.rerun_command,
        max_concurrency=job.max_concurrency,
        pod_spec=copy.deepcopy(job.spec),
        decoration_config=copy.deepcopy(job.decoration_config),
    )
    return ProwJob(
        metadata=ObjectMeta(
            name=(name_factory or (lambda: str(uuid.uuid4())))(),
            namespace=config.prowjob_namespace,
            labels=labels,
            annotations=annotations,
        ),
        spec=spec,
        status=ProwJobStatus(start_time=(now or _utc_now)()),
    )


def add_repo_ref(
    job: ProwJob, repo: str, *, base_ref: str = DEFAULT_EXTRA_REF_BASE
) -> ProwJob:
    """Return ``job`` with an extra ref for the repository the job targets.

    The new ref anchors the working directory unless an existing extra ref
    already does.
    """
    org, name = split_repo(repo)
    workdir = not any(ref.workdir for ref in job.spec.extra_refs)
    ref = Refs(
        org=org,
        repo=name,
        repo_link=f"{GITHUB_URL}/{org}/{name}",
        base_ref=base_ref,
        workdir=workdir,
        clone_depth=1,
    )
    spec = job.spec.model_copy(update={"extra_refs": [*job.spec.extra_refs, ref]})
    return job.model_copy(update={"spec": spec})


def generate_presubmits(
    config: Config,
    event: PullRequestEvent,
    *,
    extra_ref_base: str = DEFAULT_EXTRA_REF_BASE,
    logger: log.Logger | None = None,
) -> list[ProwJob]:
    logger = logger or log.get_logger("jobs")
    jobs: list[ProwJob] = []
    for repo, presubmits in config.presubmits.items():
        try:
            split_repo(repo)
        except ValidationFailedError as exc:
            logger.error(f"Skipping {len(presubmits)} job(s) from {config.path}: {exc}")
            continue
        for presubmit in presubmits:
            prow_job = add_repo_ref(
                new_presubmit(event, presubmit, config), repo, base_ref=extra_ref_base
            )
            logger.info(f"Adding job: {prow_job.name} ({presubmit.name} for {repo})")
            jobs.append(prow_job)
    return jobs


def generate_prow_jobs(
    configs: Sequence[Config],
    event: PullRequestEvent,
    *,
    extra_ref_base: str = DEFAULT_EXTRA_REF_BASE,
    logger: log.Logger | None = None,
) -> list[ProwJob]:
    """Generate one ProwJob per (repository, job definition) pair."""
    logger = logger or log.get_logger("jobs")
    logger.info(f"Will process jobs from {len(configs)} configs")
    jobs: list[ProwJob] = []
    for config in configs:
        jobs.extend(
            generate_presubmits(config, event, extra_ref_base=extra_ref_base, logger=logger)
        )
    return jobs
