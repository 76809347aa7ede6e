from __future__ import annotations

from pathlib import Path

import pytest

from prow_experiment import exec as exec_util
from prow_experiment import git


class FakeRunner:
    def __init__(self, *outputs: tuple[int, str]) -> None:
        self.outputs = list(outputs)
        self.requests: list[exec_util.CommandRequest] = []

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult:
        self.requests.append(request)
        returncode, stdout = self.outputs.pop(0) if self.outputs else (0, "")
        return exec_util.CommandResult(argv=request.argv, returncode=returncode, stdout=stdout)


def test_git_command_uses_custom_path() -> None:
    assert git.git_command(["status"]) == ["git", "status"]
    assert git.git_command(["status"], git_path=" /opt/git ") == ["/opt/git", "status"]
    assert git.git_command(["status"], git_path="  ") == ["git", "status"]


def test_init_repo_bare() -> None:
    runner = FakeRunner()
    git.init_repo(Path("/tmp/ws"), runner=runner)
    assert runner.requests[0].argv == ("git", "init", "--bare", "/tmp/ws")


def test_fetch_pull_request_binds_head_and_base() -> None:
    runner = FakeRunner()
    token = exec_util.CancelToken()

    git.fetch_pull_request(
        Path("/tmp/ws"),
        "https://github.com/kubernetes/test-infra",
        42,
        "master",
        cancel=token,
        runner=runner,
    )

    request = runner.requests[0]
    assert request.argv == (
        "git",
        "-C",
        "/tmp/ws",
        "fetch",
        "--depth=50",
        "https://github.com/kubernetes/test-infra",
        "+refs/pull/42/head:refs/heads/head",
        "+refs/heads/master:refs/heads/base",
    )
    assert request.cancel is token


def test_fetch_refspecs_keep_qualified_base_ref() -> None:
    assert git.fetch_refspecs(3, "refs/heads/release-1.0")[1] == (
        "+refs/heads/release-1.0:refs/heads/base"
    )


def test_merge_base_returns_first_token() -> None:
    runner = FakeRunner((0, "abc123\nextra\n"))

    sha = git.merge_base(Path("/tmp/ws"), "refs/heads/base", "refs/heads/head", runner=runner)

    assert sha == "abc123"
    assert runner.requests[0].argv[3:] == ("merge-base", "refs/heads/base", "refs/heads/head")


def test_merge_base_empty_output_is_parse_error() -> None:
    runner = FakeRunner((0, "\n"))

    with pytest.raises(exec_util.CommandParseError):
        git.merge_base(Path("/tmp/ws"), "base", "head", runner=runner)


def test_merge_base_unrelated_histories_fail() -> None:
    runner = FakeRunner((1, ""))

    with pytest.raises(exec_util.CommandExitError):
        git.merge_base(Path("/tmp/ws"), "base", "head", runner=runner)


def test_changed_files_with_pattern() -> None:
    runner = FakeRunner((0, "jobs/a.yaml\njobs/b.yaml\n"))

    paths = git.changed_files(
        Path("/tmp/ws"), "abc", "refs/heads/head", git.DIFF_FILTER_ADDED, "jobs/*.yaml",
        runner=runner,
    )

    assert paths == ["jobs/a.yaml", "jobs/b.yaml"]
    assert runner.requests[0].argv[3:] == (
        "diff",
        "--name-only",
        "--diff-filter=A",
        "abc...refs/heads/head",
        "--",
        "jobs/*.yaml",
    )


def test_changed_files_without_pattern_and_empty_output() -> None:
    runner = FakeRunner((0, ""))

    paths = git.changed_files(
        Path("/tmp/ws"), "abc", "def", git.DIFF_FILTER_MODIFIED, "", runner=runner
    )

    assert paths == []
    assert runner.requests[0].argv[-1] == "abc...def"


def test_worktree_add_detaches() -> None:
    runner = FakeRunner()
    git.worktree_add(Path("/tmp/ws"), "refs/heads/head", Path("/tmp/ws/head"), runner=runner)
    assert runner.requests[0].argv[3:] == (
        "worktree",
        "add",
        "--detach",
        "/tmp/ws/head",
        "refs/heads/head",
    )
