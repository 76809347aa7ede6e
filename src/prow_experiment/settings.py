"""Startup configuration for the experiment service.

Settings are read once at startup (command line flags or
``PROW_EXPERIMENT_*`` environment variables) and never re-read per event.

Example:
    >>> Settings(config_path="config.yaml", job_config_patterns="jobs/*.yaml").patterns
    ['jobs/*.yaml']
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .jobs import DEFAULT_EXTRA_REF_BASE
from .workspace import split_patterns

DEFAULT_ADDRESS = ":8720"
DEFAULT_HANDLED_ACTIONS = ("opened", "reopened", "synchronize")


def parse_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address.

    An empty host means every interface.

    Example:
        >>> parse_address(":8720")
        ('0.0.0.0', 8720)
        >>> parse_address("127.0.0.1:9000")
        ('127.0.0.1', 9000)
    """
    host, sep, port = address.strip().rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address: {address!r}")
    return host or "0.0.0.0", int(port)


class Settings(BaseModel):
    """Service configuration.

    Attributes:
        config_path: CI config path relative to the repository root.
        job_config_patterns: Comma-separated shell patterns for job configs.
        address: ``host:port`` to listen on.
        work_dir: Parent directory for ephemeral workspaces.
        output_dir: Directory generated jobs are written to.
        max_workers: Events handled concurrently.
        max_pending: Events accepted before new ones are dropped.
        task_timeout_seconds: Per-event budget; ``None`` means unbounded.
        extra_ref_base: Base ref of the synthesized extra ref.
        webhook_secret: Shared secret for ``X-Hub-Signature-256``.
        git_path: Git executable.
        handled_actions: Pull request actions that trigger a run.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    config_path: str = ""
    job_config_patterns: str = ""
    address: str = DEFAULT_ADDRESS
    work_dir: Path | None = None
    output_dir: Path | None = None
    max_workers: int = Field(default=4, ge=1)
    max_pending: int = Field(default=64, ge=1)
    task_timeout_seconds: float | None = Field(default=None, gt=0)
    extra_ref_base: str = DEFAULT_EXTRA_REF_BASE
    webhook_secret: str | None = None
    git_path: str | None = None
    handled_actions: tuple[str, ...] = DEFAULT_HANDLED_ACTIONS

    @field_validator("config_path", "job_config_patterns", "address", mode="before")
    @classmethod
    def strip_strings(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("webhook_secret", "git_path", mode="before")
    @classmethod
    def blank_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def patterns(self) -> list[str]:
        return split_patterns(self.job_config_patterns)

    def validation_errors(self) -> list[str]:
        """Return every problem that prevents the service from starting."""
        errors: list[str] = []
        if not self.config_path:
            errors.append("prow config path was not specified")
        if not self.patterns:
            errors.append("job config path patterns were not specified")
        try:
            parse_address(self.address)
        except ValueError as exc:
            errors.append(str(exc))
        return errors
