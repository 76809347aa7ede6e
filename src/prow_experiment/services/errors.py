"""Anticipated failures while handling a pull request event.

Each failure carries a machine-readable ``code`` and an optional
``recovery_hint`` shown to the operator next to the message. A failure ends
the current event only; the process keeps serving.
"""

from __future__ import annotations

from typing import Literal

ServiceFailureCode = Literal[
    "validation_failed",
    "dependency_missing",
    "external_command_failed",
    "io_failed",
    "unexpected_state",
]


class ServiceFailure(Exception):
    """Base class for failures the event pipeline expects and logs.

    Chain the underlying exception with ``raise ... from exc``.
    """

    def __init__(
        self,
        code: ServiceFailureCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint


class ValidationFailedError(ServiceFailure):
    """Input was malformed, such as a repository key that is not ``org/repo``."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)


class DependencyMissingError(ServiceFailure):
    """The git executable could not be found."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("dependency_missing", message, recovery_hint=recovery_hint)


class ExternalCommandFailedError(ServiceFailure):
    """A git step exited non-zero, was cancelled, or produced unusable output."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("external_command_failed", message, recovery_hint=recovery_hint)


class IoFailedError(ServiceFailure):
    """The workspace or worktree directories could not be created."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("io_failed", message, recovery_hint=recovery_hint)


class UnexpectedStateError(ServiceFailure):
    """A workspace operation was attempted out of order."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("unexpected_state", message, recovery_hint=recovery_hint)
