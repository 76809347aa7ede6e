"""Pydantic models for pull request events, job configs and ProwJobs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PROW_API_VERSION = "prow.k8s.io/v1"
PROW_JOB_KIND = "ProwJob"

JobAgent = Literal["kubernetes", "jenkins", "tekton-pipeline"]
ProwJobState = Literal["triggered", "pending", "success", "failure", "aborted", "error"]


class GitUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str = ""
    html_url: str = ""


class Repository(BaseModel):
    """Repository as described by a webhook payload.

    Attributes:
        name: Repository name without the owner.
        full_name: ``org/repo`` identifier.
        html_url: Web URL, also used as the fetch URL.
        owner: Owning user or organization.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    full_name: str = ""
    html_url: str
    owner: GitUser = Field(default_factory=GitUser)

    @model_validator(mode="after")
    def fill_names_from_full_name(self) -> Repository:
        if "/" in self.full_name:
            owner, _, name = self.full_name.partition("/")
            if not self.owner.login:
                self.owner = GitUser(login=owner)
            if not self.name:
                self.name = name
        return self


class PullRequestBranch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ref: str
    sha: str = ""
    repo: Repository | None = None


class PullRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str = ""
    html_url: str = ""
    user: GitUser = Field(default_factory=GitUser)
    head: PullRequestBranch
    base: PullRequestBranch

    @model_validator(mode="after")
    def require_base_repo(self) -> PullRequest:
        if self.base.repo is None:
            raise ValueError("pull_request.base.repo is required")
        return self

    @property
    def base_repo(self) -> Repository:
        assert self.base.repo is not None
        return self.base.repo


class PullRequestEvent(BaseModel):
    """Pull request webhook event.

    Immutable input to one pipeline run. ``guid`` is the delivery id; it is
    read from the ``GUID`` key or filled from the delivery header.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    action: str = ""
    number: int = 0
    pull_request: PullRequest
    guid: str = Field(default="", alias="GUID")

    @model_validator(mode="before")
    @classmethod
    def default_number(cls, data: object) -> object:
        if not isinstance(data, dict) or data.get("number"):
            return data
        pull_request = data.get("pull_request")
        if isinstance(pull_request, dict) and "number" in pull_request:
            return {**data, "number": pull_request["number"]}
        return data


class Pull(BaseModel):
    model_config = ConfigDict(extra="allow")

    number: int
    author: str
    sha: str
    title: str | None = None
    ref: str | None = None
    link: str | None = None
    commit_link: str | None = None
    author_link: str | None = None


class Refs(BaseModel):
    """Repository reference cloned before a job runs."""

    model_config = ConfigDict(extra="allow")

    org: str
    repo: str
    repo_link: str | None = None
    base_ref: str | None = None
    base_sha: str | None = None
    base_link: str | None = None
    pulls: list[Pull] = Field(default_factory=list)
    path_alias: str | None = None
    workdir: bool = False
    clone_depth: int = 0


class Presubmit(BaseModel):
    """A presubmit job definition.

    Fields beyond the ones modelled here are kept verbatim so that they take
    part in change detection and pass through to the generated job.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    agent: JobAgent = "kubernetes"
    cluster: str = "default"
    namespace: str | None = None
    max_concurrency: int = 0
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    context: str = ""
    always_run: bool = False
    optional: bool = False
    skip_report: bool = False
    run_if_changed: str | None = None
    branches: list[str] = Field(default_factory=list)
    skip_branches: list[str] = Field(default_factory=list)
    rerun_command: str | None = None
    trigger: str | None = None
    decorate: bool | None = None
    decoration_config: dict[str, Any] | None = None
    extra_refs: list[Refs] = Field(default_factory=list)
    spec: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def require_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("job name must not be empty")
        return value

    @model_validator(mode="after")
    def default_context(self) -> Presubmit:
        if not self.context:
            self.context = self.name
        return self


class Config(BaseModel):
    """Parsed CI configuration for one job-config file.

    Attributes:
        path: Repo-relative job-config path the config was loaded from.
        prowjob_namespace: Namespace ProwJobs are created in.
        pod_namespace: Namespace test pods run in.
        presubmits: Job definitions keyed by ``org/repo``.
    """

    model_config = ConfigDict(extra="ignore")

    path: str | None = None
    prowjob_namespace: str = "default"
    pod_namespace: str = "default"
    presubmits: dict[str, list[Presubmit]] = Field(default_factory=dict)

    def job_count(self) -> int:
        return sum(len(jobs) for jobs in self.presubmits.values())


class ObjectMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    namespace: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class ProwJobSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["presubmit"] = "presubmit"
    agent: JobAgent = "kubernetes"
    cluster: str = "default"
    namespace: str | None = None
    job: str
    refs: Refs | None = None
    extra_refs: list[Refs] = Field(default_factory=list)
    report: bool = True
    context: str = ""
    rerun_command: str | None = None
    max_concurrency: int = 0
    pod_spec: dict[str, Any] | None = None
    decoration_config: dict[str, Any] | None = None


class ProwJobStatus(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    start_time: str = Field(alias="startTime")
    state: ProwJobState = "triggered"


class ProwJob(BaseModel):
    """Pull-request-scoped job specification ready for submission."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(default=PROW_API_VERSION, alias="apiVersion")
    kind: str = PROW_JOB_KIND
    metadata: ObjectMeta
    spec: ProwJobSpec
    status: ProwJobStatus

    @property
    def name(self) -> str:
        return self.metadata.name
