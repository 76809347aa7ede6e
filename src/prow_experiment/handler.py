"""Handle one pull request event end to end.

The pipeline is strictly sequential: fetch, merge base, changed files,
worktrees, config loading, squashing, job generation, and writing. Any git or
workspace failure aborts the event without writing jobs; the workspace is
removed on every exit path.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from . import exec as exec_util
from . import git, jobconfig, jobs, loader, log, squash, writer
from .models import ProwJob, PullRequestEvent
from .services.base import BaseService
from .services.errors import (
    DependencyMissingError,
    ExternalCommandFailedError,
    ServiceFailure,
)
from .settings import Settings
from .workspace import Workspace

T = TypeVar("T")


@dataclass(frozen=True)
class ExperimentRequest:
    event: PullRequestEvent
    cancel: exec_util.CancelToken | None = None


@dataclass(frozen=True)
class ExperimentOutcome:
    """Result of handling one event.

    Args:
        jobs: Generated ProwJobs.
        written: Files the jobs were written to.
        modified_paths: Job-config paths modified by the pull request.
        added_paths: Job-config paths added by the pull request.
        error: Failure message when the event was abandoned.
    """

    jobs: tuple[ProwJob, ...] = ()
    written: tuple[Path, ...] = ()
    modified_paths: tuple[str, ...] = ()
    added_paths: tuple[str, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def _git_step(description: str, action: Callable[[], T]) -> T:
    try:
        return action()
    except exec_util.CommandStartError as exc:
        if exc.missing:
            raise DependencyMissingError(
                f"{description}: {exc}", recovery_hint="install git or set --git-path"
            ) from exc
        raise ExternalCommandFailedError(f"{description}: {exc}") from exc
    except (exec_util.CommandExecutionError, exec_util.CommandParseError) as exc:
        raise ExternalCommandFailedError(f"{description}: {exc}") from exc


class ExperimentService(BaseService[ExperimentRequest, ExperimentOutcome]):
    """Pipeline for a single pull request event.

    Create one service per event; the active logger is bound to the pull
    request being handled.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        runner: exec_util.CommandRunner | None = None,
        load: loader.LoadFn = jobconfig.load_config,
        logger: log.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._load = load
        self._logger = logger or log.get_logger("handler")

    def _run(self, request: ExperimentRequest) -> ExperimentOutcome:
        settings = self._settings
        event = request.event
        pr = event.pull_request
        self._logger = self._logger.bind(pr=pr.number)
        logger = self._logger
        logger.info(f"Handling PR {pr.number}.")

        with Workspace.create(
            settings.work_dir,
            git_path=settings.git_path,
            cancel=request.cancel,
            runner=self._runner,
            logger=logger.child("workspace"),
        ) as workspace:
            _git_step("could not initialize git repo", workspace.init)
            _git_step(
                "could not fetch pull request",
                lambda: workspace.fetch_pull_request(
                    pr.base_repo.html_url, pr.number, pr.base.ref
                ),
            )
            merge_base = _git_step(
                "could not find merge base for the pull request",
                lambda: workspace.merge_base(git.BASE_REF, git.HEAD_REF),
            )
            logger.debug(f"merge base is {merge_base}")
            modified_paths = _git_step(
                "could not extract modified files",
                lambda: workspace.changed_files(
                    merge_base, git.HEAD_REF, git.DIFF_FILTER_MODIFIED, settings.patterns
                ),
            )
            logger.debug(f"{len(modified_paths)} configs were modified")
            added_paths = _git_step(
                "could not extract newly added files",
                lambda: workspace.changed_files(
                    merge_base, git.HEAD_REF, git.DIFF_FILTER_ADDED, settings.patterns
                ),
            )
            logger.debug(f"{len(added_paths)} configs were added")
            if not modified_paths and not added_paths:
                logger.info(f"No job configs were modified or added in PR: {pr.number}")
                return ExperimentOutcome()

            head_tree = _git_step(
                "could not create work tree for PR's HEAD",
                lambda: workspace.worktree_for(git.HEAD_REF),
            )
            base_tree = _git_step(
                "could not make work tree for PR's merge base",
                lambda: workspace.worktree_for(merge_base),
            )

            config_logger = logger.child("loader")
            base_configs = loader.load_configs(
                base_tree, settings.config_path, modified_paths,
                load=self._load, logger=config_logger,
            )
            head_configs = loader.load_configs(
                head_tree, settings.config_path, modified_paths,
                load=self._load, logger=config_logger,
            )
            added_configs = loader.load_configs(
                head_tree, settings.config_path, added_paths,
                load=self._load, logger=config_logger,
            )

        configs = squash.squash_pipeline(base_configs, head_configs, added_configs)
        prow_jobs = jobs.generate_prow_jobs(
            configs,
            event,
            extra_ref_base=settings.extra_ref_base,
            logger=logger.child("jobs"),
        )
        written = writer.write_jobs(
            prow_jobs, settings.output_dir, logger=logger.child("writer")
        )
        logger.info(f"Generated {len(prow_jobs)} job(s) for PR {pr.number}")
        return ExperimentOutcome(
            jobs=tuple(prow_jobs),
            written=tuple(written),
            modified_paths=tuple(modified_paths),
            added_paths=tuple(added_paths),
        )

    def _handle_failure(self, error: ServiceFailure) -> ExperimentOutcome:
        message = str(error)
        if error.recovery_hint:
            message = f"{message} (hint: {error.recovery_hint})"
        self._logger.error(message)
        return ExperimentOutcome(error=message)


def handle_pull_request_event(
    event: PullRequestEvent,
    settings: Settings,
    *,
    cancel: exec_util.CancelToken | None = None,
    runner: exec_util.CommandRunner | None = None,
    load: loader.LoadFn = jobconfig.load_config,
    logger: log.Logger | None = None,
) -> ExperimentOutcome:
    """Handle one pull request event; never raises.

    Expected failures are logged by the service. Anything else is recovered
    here, logged with its traceback, and yields an empty outcome.
    """
    logger = logger or log.get_logger("handler")
    service = ExperimentService(settings, runner=runner, load=load, logger=logger)
    try:
        return service(ExperimentRequest(event=event, cancel=cancel))
    except Exception as exc:
        message = f"unexpected failure handling PR {event.pull_request.number}: {exc}"
        logger.error(f"{message}\n{traceback.format_exc()}")
        return ExperimentOutcome(error=message)
