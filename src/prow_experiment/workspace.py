"""Ephemeral, request-scoped git workspaces.

A ``Workspace`` owns one temporary bare repository for the lifetime of a
single pull request event. It is a context manager: the directory is removed
exactly once when the block exits, whichever step failed.

Example:
    >>> WorkspaceState.CREATED.value
    'created'
"""

from __future__ import annotations

import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import Sequence

from . import exec as exec_util
from . import git, log
from .services.errors import IoFailedError, UnexpectedStateError

WORKSPACE_DIR_PREFIX = "prowjob_experiment_"
WORKTREES_DIR = "trees"


class WorkspaceState(str, Enum):
    CREATED = "created"
    INITIALIZED = "initialized"
    FETCHED = "fetched"
    DIFFED = "diffed"
    WORKTREES_MATERIALIZED = "worktrees-materialized"
    DESTROYED = "destroyed"


_TRANSITIONS: dict[WorkspaceState, frozenset[WorkspaceState]] = {
    WorkspaceState.CREATED: frozenset({WorkspaceState.INITIALIZED}),
    WorkspaceState.INITIALIZED: frozenset({WorkspaceState.FETCHED}),
    WorkspaceState.FETCHED: frozenset({WorkspaceState.FETCHED, WorkspaceState.DIFFED}),
    WorkspaceState.DIFFED: frozenset(
        {WorkspaceState.DIFFED, WorkspaceState.WORKTREES_MATERIALIZED}
    ),
    WorkspaceState.WORKTREES_MATERIALIZED: frozenset(
        {WorkspaceState.WORKTREES_MATERIALIZED}
    ),
    WorkspaceState.DESTROYED: frozenset(),
}


def make_working_directory(base_dir: Path | None = None) -> Path:
    """Create a uniquely named temporary directory for one workspace.

    Args:
        base_dir: Parent directory. Defaults to the system temp directory.

    Returns:
        Path to the new directory. The caller owns its removal.
    """
    parent = base_dir if base_dir is not None else Path(tempfile.gettempdir())
    return Path(tempfile.mkdtemp(prefix=WORKSPACE_DIR_PREFIX, dir=parent))


def split_patterns(patterns: str) -> list[str]:
    """Split a comma-separated pattern list, dropping blanks.

    Example:
        >>> split_patterns("jobs/*.yaml, ,config/**/*.yaml")
        ['jobs/*.yaml', 'config/**/*.yaml']
    """
    return [item.strip() for item in patterns.split(",") if item.strip()]


class Workspace:
    """One ephemeral repository holding a pull request's ``head`` and ``base``."""

    def __init__(
        self,
        root: Path,
        *,
        git_path: str | None = None,
        cancel: exec_util.CancelToken | None = None,
        runner: exec_util.CommandRunner | None = None,
        logger: log.Logger | None = None,
    ) -> None:
        self.root = root
        self.state = WorkspaceState.CREATED
        self._git_path = git_path
        self._cancel = cancel
        self._runner = runner
        self._logger = logger or log.get_logger("workspace")
        self._worktrees: dict[str, Path] = {}

    @classmethod
    def create(
        cls,
        base_dir: Path | None = None,
        *,
        git_path: str | None = None,
        cancel: exec_util.CancelToken | None = None,
        runner: exec_util.CommandRunner | None = None,
        logger: log.Logger | None = None,
    ) -> Workspace:
        try:
            root = make_working_directory(base_dir)
        except OSError as exc:
            raise IoFailedError(
                f"could not initialize working directory under {base_dir}: {exc}"
            ) from exc
        workspace = cls(root, git_path=git_path, cancel=cancel, runner=runner, logger=logger)
        workspace._logger.debug(f"created workspace at {root}")
        return workspace

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    @property
    def worktrees(self) -> dict[str, Path]:
        return dict(self._worktrees)

    def _advance(self, target: WorkspaceState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise UnexpectedStateError(
                f"workspace cannot move from {self.state.value} to {target.value}"
            )
        self.state = target

    def _require(self, *states: WorkspaceState) -> None:
        if self.state not in states:
            allowed = ", ".join(state.value for state in states)
            raise UnexpectedStateError(
                f"workspace is {self.state.value}; expected one of: {allowed}"
            )

    def _git_kwargs(self) -> dict[str, object]:
        return {"git_path": self._git_path, "cancel": self._cancel, "runner": self._runner}

    @staticmethod
    def _resolve(ref: str) -> str:
        if ref in (git.HEAD_REF, git.BASE_REF):
            return git.local_ref(ref)
        return ref

    def init(self) -> None:
        """Initialize an empty bare repository at the workspace root."""
        self._require(WorkspaceState.CREATED)
        git.init_repo(self.root, bare=True, **self._git_kwargs())
        self._advance(WorkspaceState.INITIALIZED)

    def fetch_pull_request(self, repo_url: str, pr_number: int, base_ref: str) -> None:
        """Fetch the pull request head and its base branch into ``head``/``base``."""
        self._require(WorkspaceState.INITIALIZED, WorkspaceState.FETCHED)
        git.fetch_pull_request(self.root, repo_url, pr_number, base_ref, **self._git_kwargs())
        self._advance(WorkspaceState.FETCHED)

    def merge_base(self, ref_a: str = git.BASE_REF, ref_b: str = git.HEAD_REF) -> str:
        self._require(WorkspaceState.FETCHED, WorkspaceState.DIFFED)
        return git.merge_base(
            self.root, self._resolve(ref_a), self._resolve(ref_b), **self._git_kwargs()
        )

    def changed_files(
        self,
        from_ref: str,
        to_ref: str,
        diff_filter: str,
        patterns: Sequence[str],
    ) -> list[str]:
        """Return changed paths matching any of ``patterns``.

        Each pattern is passed to its own ``git diff`` invocation; results are
        merged in first-seen order without duplicates. No patterns means no
        path restriction.
        """
        self._require(WorkspaceState.FETCHED, WorkspaceState.DIFFED)
        merged: list[str] = []
        seen: set[str] = set()
        for pattern in patterns or [""]:
            paths = git.changed_files(
                self.root,
                self._resolve(from_ref),
                self._resolve(to_ref),
                diff_filter,
                pattern,
                **self._git_kwargs(),
            )
            for path in paths:
                if path in seen:
                    continue
                seen.add(path)
                merged.append(path)
        self._advance(WorkspaceState.DIFFED)
        return merged

    def worktree_for(self, ref: str) -> Path:
        """Check out ``ref`` into a worktree named after it under ``trees/``.

        Worktrees never share a directory with the bare repository files.
        """
        self._require(WorkspaceState.DIFFED, WorkspaceState.WORKTREES_MATERIALIZED)
        if ref in self._worktrees:
            return self._worktrees[ref]
        dest = self.root / WORKTREES_DIR / ref
        try:
            dest.parent.mkdir(exist_ok=True)
        except OSError as exc:
            raise IoFailedError(f"could not create worktree directory {dest.parent}: {exc}") from exc
        git.worktree_add(self.root, self._resolve(ref), dest, **self._git_kwargs())
        self._worktrees[ref] = dest
        self._advance(WorkspaceState.WORKTREES_MATERIALIZED)
        return dest

    def destroy(self) -> None:
        """Remove the workspace directory. Safe to call more than once."""
        if self.state is WorkspaceState.DESTROYED:
            return
        self.state = WorkspaceState.DESTROYED
        try:
            shutil.rmtree(self.root)
        except FileNotFoundError:
            pass
        except OSError as exc:
            self._logger.warning(f"failed to remove workspace {self.root}: {exc}")
            return
        self._logger.debug(f"removed workspace {self.root}")
