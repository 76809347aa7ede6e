# ruff: noqa: E402

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from prow_experiment.models import PullRequestEvent

GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Prow Robot",
    "GIT_AUTHOR_EMAIL": "robot@example.com",
    "GIT_COMMITTER_NAME": "Prow Robot",
    "GIT_COMMITTER_EMAIL": "robot@example.com",
}

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

CI_CONFIG = "prowjob_namespace: prow-jobs\npod_namespace: test-pods\n"


class OriginRepo:
    """Non-bare repository standing in for the pull request's upstream."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def git(self, *args: str) -> str:
        env = {**os.environ, **GIT_IDENTITY}
        completed = subprocess.run(
            ["git", "-C", str(self.path), *args],
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )
        return completed.stdout.strip()

    def init(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")

    def write(self, relative: str, content: str) -> None:
        target = self.path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def commit(self, message: str) -> str:
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD")

    def checkout(self, *args: str) -> None:
        self.git("checkout", "-q", *args)

    def open_pull_request(self, number: int, sha: str) -> None:
        self.git("update-ref", f"refs/pull/{number}/head", sha)


def job_yaml(repo: str, *jobs: dict) -> str:
    lines = ["presubmits:", f"  {repo}:"]
    for job in jobs:
        lines.append(f"  - name: {job['name']}")
        for key, value in job.items():
            if key == "name":
                continue
            lines.append(f"    {key}: {value}")
    return "\n".join(lines) + "\n"


def make_event(
    *,
    number: int = 1,
    repo_url: str = "https://github.com/kubernetes/test-infra",
    full_name: str = "kubernetes/test-infra",
    base_ref: str = "main",
    base_sha: str = "b" * 40,
    head_sha: str = "a" * 40,
    action: str = "opened",
    guid: str = "",
) -> PullRequestEvent:
    payload = {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "title": "Add job",
            "html_url": f"https://github.com/{full_name}/pull/{number}",
            "user": {"login": "octocat", "html_url": "https://github.com/octocat"},
            "head": {"ref": "feature", "sha": head_sha},
            "base": {
                "ref": base_ref,
                "sha": base_sha,
                "repo": {"full_name": full_name, "html_url": repo_url},
            },
        },
    }
    if guid:
        payload["GUID"] = guid
    return PullRequestEvent.model_validate(payload)
