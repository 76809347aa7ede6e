"""Git helper functions used by the workspace manager."""

from __future__ import annotations

from pathlib import Path

from . import exec as exec_util

HEAD_REF = "head"
BASE_REF = "base"
FETCH_DEPTH = 50

DIFF_FILTER_ADDED = "A"
DIFF_FILTER_MODIFIED = "M"


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path."""
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def local_ref(name: str) -> str:
    """Return the fully qualified local branch ref for a well-known name.

    Example:
        >>> local_ref(HEAD_REF)
        'refs/heads/head'
    """
    return f"refs/heads/{name}"


def _request(
    args: list[str],
    *,
    git_path: str | None,
    cancel: exec_util.CancelToken | None,
) -> exec_util.CommandRequest:
    return exec_util.CommandRequest(
        argv=tuple(git_command(args, git_path=git_path)),
        cancel=cancel,
    )


def init_repo(
    path: Path,
    *,
    bare: bool = True,
    git_path: str | None = None,
    cancel: exec_util.CancelToken | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Initialize a git repository at ``path``."""
    args = ["init"]
    if bare:
        args.append("--bare")
    args.append(str(path))
    exec_util.run_checked(
        _request(args, git_path=git_path, cancel=cancel), runner=runner
    )


def fetch_refspecs(pr_number: int, base_ref: str) -> list[str]:
    """Return the forced refspecs that bind ``head`` and ``base`` locally.

    Example:
        >>> fetch_refspecs(12, "main")
        ['+refs/pull/12/head:refs/heads/head', '+refs/heads/main:refs/heads/base']
    """
    base_source = base_ref if base_ref.startswith("refs/") else f"refs/heads/{base_ref}"
    return [
        f"+refs/pull/{pr_number}/head:{local_ref(HEAD_REF)}",
        f"+{base_source}:{local_ref(BASE_REF)}",
    ]


def fetch_pull_request(
    repo: Path,
    repo_url: str,
    pr_number: int,
    base_ref: str,
    *,
    depth: int = FETCH_DEPTH,
    git_path: str | None = None,
    cancel: exec_util.CancelToken | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Fetch the head and base of a pull request into ``head`` and ``base``.

    Both refs are force-updated by a single shallow fetch, so a refetch
    overwrites them instead of appending.
    """
    args = [
        "-C",
        str(repo),
        "fetch",
        f"--depth={depth}",
        repo_url,
        *fetch_refspecs(pr_number, base_ref),
    ]
    exec_util.run_checked(
        _request(args, git_path=git_path, cancel=cancel), runner=runner
    )


def _first_token(result: exec_util.CommandResult) -> str:
    tokens = result.stdout.split()
    if not tokens:
        raise ValueError("empty output")
    return tokens[0]


def merge_base(
    repo: Path,
    ref_a: str,
    ref_b: str,
    *,
    git_path: str | None = None,
    cancel: exec_util.CancelToken | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> str:
    """Return the merge base commit between ``ref_a`` and ``ref_b``.

    Unrelated histories make git exit non-zero, which surfaces as
    ``CommandExitError``.
    """
    spec = exec_util.CommandSpec(
        request=_request(
            ["-C", str(repo), "merge-base", ref_a, ref_b],
            git_path=git_path,
            cancel=cancel,
        ),
        parser=_first_token,
        context="merge-base",
    )
    return exec_util.run_typed(spec, runner=runner)


def changed_files(
    repo: Path,
    from_ref: str,
    to_ref: str,
    diff_filter: str,
    pattern: str,
    *,
    git_path: str | None = None,
    cancel: exec_util.CancelToken | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> list[str]:
    """Return paths changed between ``from_ref`` and ``to_ref``.

    Args:
        repo: Repository directory.
        from_ref: Starting point (the merge base).
        to_ref: End point.
        diff_filter: Single change-type letter (``A`` added, ``M`` modified).
        pattern: One pathspec limiting the returned paths. An empty pattern
            means every path.

    Returns:
        Whitespace-delimited paths from ``git diff --name-only``.
    """
    args = [
        "-C",
        str(repo),
        "diff",
        "--name-only",
        f"--diff-filter={diff_filter}",
        f"{from_ref}...{to_ref}",
    ]
    if pattern:
        args.extend(["--", pattern])
    spec = exec_util.CommandSpec(
        request=_request(args, git_path=git_path, cancel=cancel),
        parser=lambda result: result.stdout.split(),
        context="diff",
    )
    return exec_util.run_typed(spec, runner=runner)


def worktree_add(
    repo: Path,
    ref: str,
    dest: Path,
    *,
    git_path: str | None = None,
    cancel: exec_util.CancelToken | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Add a worktree at ``dest`` checked out at ``ref``."""
    exec_util.run_checked(
        _request(
            ["-C", str(repo), "worktree", "add", "--detach", str(dest), ref],
            git_path=git_path,
            cancel=cancel,
        ),
        runner=runner,
    )
