"""Command line entry point for the experiment service."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError

from . import __version__, server
from . import exec as exec_util
from . import log as prow_log
from .dispatch import EventDispatcher
from .handler import handle_pull_request_event
from .jobs import DEFAULT_EXTRA_REF_BASE
from .models import PullRequestEvent
from .settings import DEFAULT_ADDRESS, Settings, parse_address

app = typer.Typer(
    name="prow-experiment",
    add_completion=False,
    no_args_is_help=True,
    help="Generate ProwJobs for new or changed presubmits in a pull request.",
)

_ENV_PREFIX = "PROW_EXPERIMENT_"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _log_level_callback(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not prow_log.is_level_name(value):
        raise typer.BadParameter(f"expected one of: {', '.join(prow_log.LEVEL_NAMES)}")
    return value


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (trace|debug|info|success|warning|error).",
        callback=_log_level_callback,
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output."),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    if log_level is not None:
        prow_log.set_level(log_level)
    if no_color:
        prow_log.set_no_color(True)


def _require_valid(settings: Settings) -> None:
    errors = settings.validation_errors()
    if not errors:
        return
    for message in errors:
        prow_log.error(message)
    raise typer.Exit(code=1)


_CONFIG_PATH = typer.Option(
    "",
    "--config-path",
    envvar=f"{_ENV_PREFIX}CONFIG_PATH",
    help="Path to config.yaml relative to the repository root.",
)
_PATTERNS = typer.Option(
    "",
    "--job-config-patterns",
    envvar=f"{_ENV_PREFIX}JOB_CONFIG_PATTERNS",
    help="Comma separated shell filename patterns for prowjob configs.",
)
_WORK_DIR = typer.Option(
    None,
    "--work-dir",
    envvar=f"{_ENV_PREFIX}WORK_DIR",
    help="Parent directory for ephemeral git workspaces.",
)
_OUTPUT_DIR = typer.Option(
    None,
    "--output-dir",
    envvar=f"{_ENV_PREFIX}OUTPUT_DIR",
    help="Directory the generated ProwJobs are written to.",
)
_EXTRA_REF_BASE = typer.Option(
    DEFAULT_EXTRA_REF_BASE,
    "--extra-ref-base",
    envvar=f"{_ENV_PREFIX}EXTRA_REF_BASE",
    help="Base ref of the extra ref added for the job's repository.",
)
_GIT_PATH = typer.Option(
    None,
    "--git-path",
    envvar=f"{_ENV_PREFIX}GIT_PATH",
    help="Git executable.",
)
_TASK_TIMEOUT = typer.Option(
    None,
    "--task-timeout",
    envvar=f"{_ENV_PREFIX}TASK_TIMEOUT",
    help="Seconds an event may take before its git commands are killed.",
)


@app.command()
def serve(
    config_path: str = _CONFIG_PATH,
    job_config_patterns: str = _PATTERNS,
    address: str = typer.Option(
        DEFAULT_ADDRESS,
        "--address",
        envvar=f"{_ENV_PREFIX}ADDRESS",
        help="ip:port to listen on.",
    ),
    work_dir: Optional[Path] = _WORK_DIR,
    output_dir: Optional[Path] = _OUTPUT_DIR,
    max_workers: int = typer.Option(
        4, "--max-workers", envvar=f"{_ENV_PREFIX}MAX_WORKERS", min=1,
        help="Events handled concurrently.",
    ),
    max_pending: int = typer.Option(
        64, "--max-pending", envvar=f"{_ENV_PREFIX}MAX_PENDING", min=1,
        help="Events accepted before new ones are dropped.",
    ),
    task_timeout: Optional[float] = _TASK_TIMEOUT,
    extra_ref_base: str = _EXTRA_REF_BASE,
    webhook_secret: Optional[str] = typer.Option(
        None,
        "--webhook-secret",
        envvar=f"{_ENV_PREFIX}WEBHOOK_SECRET",
        help="Shared secret used to verify X-Hub-Signature-256.",
    ),
    git_path: Optional[str] = _GIT_PATH,
) -> None:
    """Listen for pull request events."""
    settings = Settings(
        config_path=config_path,
        job_config_patterns=job_config_patterns,
        address=address,
        work_dir=work_dir,
        output_dir=output_dir,
        max_workers=max_workers,
        max_pending=max_pending,
        task_timeout_seconds=task_timeout,
        extra_ref_base=extra_ref_base,
        webhook_secret=webhook_secret,
        git_path=git_path,
    )
    _require_valid(settings)
    host, port = parse_address(settings.address)

    dispatcher = EventDispatcher(
        lambda event, token: handle_pull_request_event(event, settings, cancel=token),
        max_workers=settings.max_workers,
        max_pending=settings.max_pending,
        task_timeout_seconds=settings.task_timeout_seconds,
    )
    application = server.create_app(settings, dispatcher)
    prow_log.info(f"Listening for events on: {settings.address}")
    try:
        uvicorn.run(application, host=host, port=port, log_level="warning")
    finally:
        dispatcher.shutdown(cancel_running=True)


@app.command()
def run(
    event_file: Path = typer.Argument(..., help="Pull request event JSON file."),
    config_path: str = _CONFIG_PATH,
    job_config_patterns: str = _PATTERNS,
    work_dir: Optional[Path] = _WORK_DIR,
    output_dir: Optional[Path] = _OUTPUT_DIR,
    task_timeout: Optional[float] = _TASK_TIMEOUT,
    extra_ref_base: str = _EXTRA_REF_BASE,
    git_path: Optional[str] = _GIT_PATH,
) -> None:
    """Handle one pull request event from a file and exit."""
    settings = Settings(
        config_path=config_path,
        job_config_patterns=job_config_patterns,
        work_dir=work_dir,
        output_dir=output_dir,
        task_timeout_seconds=task_timeout,
        extra_ref_base=extra_ref_base,
        git_path=git_path,
    )
    _require_valid(settings)
    try:
        payload = json.loads(event_file.read_text(encoding="utf-8"))
        event = PullRequestEvent.model_validate(payload)
    except (OSError, ValueError, ValidationError) as exc:
        prow_log.error(f"Error handling event: {exc}")
        raise typer.Exit(code=1) from exc

    outcome = handle_pull_request_event(
        event,
        settings,
        cancel=exec_util.CancelToken.with_timeout(settings.task_timeout_seconds),
    )
    for path in outcome.written:
        typer.echo(str(path))
    if outcome.failed:
        raise typer.Exit(code=1)


def main() -> None:
    app()
