"""Subprocess helpers for running external commands."""

from __future__ import annotations

import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Callable, Generic, Mapping, Protocol, TypeVar

from . import log

ParsedT = TypeVar("ParsedT")

_POLL_INTERVAL_SECONDS = 0.05


@dataclass(frozen=True)
class CancelToken:
    """Cooperative cancellation shared by every command of one task.

    ``event`` may be shared across tasks (process shutdown); ``deadline`` is
    a ``time.monotonic()`` value private to one task.
    """

    event: threading.Event = field(default_factory=threading.Event)
    deadline: float | None = None

    @classmethod
    def with_timeout(
        cls, seconds: float | None, *, event: threading.Event | None = None
    ) -> CancelToken:
        deadline = time.monotonic() + seconds if seconds is not None else None
        return cls(event=event or threading.Event(), deadline=deadline)

    def tightened(self, seconds: float) -> CancelToken:
        """Return a token sharing this event whose deadline is the earlier one."""
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return CancelToken(event=self.event, deadline=deadline)

    def cancel(self) -> None:
        self.event.set()

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def cancelled(self) -> bool:
        return self.event.is_set() or self.expired()


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout_seconds: float | None = None
    cancel: CancelToken | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str = ""


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult: ...


@dataclass(frozen=True)
class CommandExecutionError(RuntimeError):
    """Raised when a command cannot be executed to a successful exit."""

    request: CommandRequest
    detail: str
    result: CommandResult | None = None

    def __str__(self) -> str:
        return self.detail


@dataclass(frozen=True)
class CommandStartError(CommandExecutionError):
    """The process could not be started."""

    missing: bool = False


class CommandOutputError(CommandExecutionError):
    """Standard output could not be read."""


class CommandWaitError(CommandExecutionError):
    """Waiting for the process to finish failed."""


@dataclass(frozen=True)
class CommandExitError(CommandExecutionError):
    """The process exited with a non-zero status."""

    returncode: int = 1


class CommandCancelledError(CommandExecutionError):
    """The cancel token fired or the deadline passed; the process was killed."""


@dataclass(frozen=True)
class CommandParseError(RuntimeError):
    """Raised when command output parsing fails."""

    request: CommandRequest
    detail: str
    context: str | None = None

    def __str__(self) -> str:
        return self.detail


def command_text(argv: tuple[str, ...] | list[str]) -> str:
    return " ".join(argv)


def _stream_lines(stream: IO[str], logger: log.Logger, sink: list[str]) -> None:
    for raw in stream:
        line = raw.rstrip("\n")
        sink.append(line)
        if line:
            logger.info(line)


class StreamingCommandRunner:
    """Default runner: captures stdout, streams stderr lines to the log.

    The stderr reader is a daemon thread that is never joined before stdout
    is returned.
    """

    def __init__(self, logger: log.Logger | None = None) -> None:
        self._logger = logger or log.get_logger("exec")

    def run(self, request: CommandRequest) -> CommandResult:
        logger = self._logger
        logger.info(f"Executing command: {command_text(request.argv)}")
        try:
            process = subprocess.Popen(
                list(request.argv),
                cwd=request.cwd,
                env=dict(request.env) if request.env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as exc:
            raise CommandStartError(
                request=request,
                detail=f"missing required command: {request.argv[0]}",
                missing=True,
            ) from exc
        except OSError as exc:
            raise CommandStartError(
                request=request,
                detail=f"failed to start {command_text(request.argv)}: {exc}",
            ) from exc

        stderr_lines: list[str] = []
        threading.Thread(
            target=_stream_lines,
            args=(process.stderr, logger, stderr_lines),
            daemon=True,
        ).start()

        cancel = request.cancel
        if request.timeout_seconds is not None:
            if cancel is None:
                cancel = CancelToken.with_timeout(request.timeout_seconds)
            else:
                cancel = cancel.tightened(request.timeout_seconds)
        killed = threading.Event()
        if cancel is not None:
            threading.Thread(
                target=_watch_cancel, args=(process, cancel, killed), daemon=True
            ).start()

        try:
            stdout = process.stdout.read() if process.stdout is not None else ""
        except (OSError, ValueError) as exc:
            process.kill()
            raise CommandOutputError(
                request=request,
                detail=f"failed to read output of {command_text(request.argv)}: {exc}",
            ) from exc

        try:
            returncode = process.wait()
        except OSError as exc:
            raise CommandWaitError(
                request=request,
                detail=f"failed to wait for {command_text(request.argv)}: {exc}",
            ) from exc

        logger.info(f"Process exited with: {returncode}")
        result = CommandResult(
            argv=request.argv,
            returncode=returncode,
            stdout=stdout,
            stderr="\n".join(stderr_lines),
        )
        if killed.is_set():
            raise CommandCancelledError(
                request=request,
                result=result,
                detail=f"command cancelled: {command_text(request.argv)}",
            )
        return result


def _watch_cancel(
    process: subprocess.Popen[str], cancel: CancelToken, killed: threading.Event
) -> None:
    while process.poll() is None:
        if cancel.cancelled():
            killed.set()
            process.kill()
            return
        cancel.event.wait(_POLL_INTERVAL_SECONDS)


_DEFAULT_COMMAND_RUNNER: CommandRunner = StreamingCommandRunner()


@dataclass(frozen=True)
class CommandSpec(Generic[ParsedT]):
    """Typed command spec with a parser for command output."""

    request: CommandRequest
    parser: Callable[[CommandResult], ParsedT]
    context: str | None = None


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult:
    """Execute a typed command request with the given runner."""
    if request.cancel is not None and request.cancel.cancelled():
        raise CommandCancelledError(
            request=request,
            detail=f"command cancelled before start: {command_text(request.argv)}",
        )
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def _command_failure_detail(request: CommandRequest, result: CommandResult) -> str:
    output = (result.stderr or result.stdout or "").strip()
    command = command_text(request.argv)
    if output:
        return f"command failed with exit status {result.returncode}: {command}\n{output}"
    return f"command failed with exit status {result.returncode}: {command}"


def run_checked(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult:
    """Execute a command and raise ``CommandExitError`` on a non-zero exit."""
    result = run_with_runner(request, runner=runner)
    if result.returncode != 0:
        raise CommandExitError(
            request=request,
            result=result,
            detail=_command_failure_detail(request, result),
            returncode=result.returncode,
        )
    return result


def run_typed(spec: CommandSpec[ParsedT], *, runner: CommandRunner | None = None) -> ParsedT:
    """Execute a command and parse its successful output into a typed value."""
    result = run_checked(spec.request, runner=runner)
    try:
        return spec.parser(result)
    except CommandParseError:
        raise
    except Exception as exc:
        context = f" ({spec.context})" if spec.context else ""
        raise CommandParseError(
            request=spec.request,
            detail=f"failed to parse command output{context}: {exc}",
            context=spec.context,
        ) from exc
