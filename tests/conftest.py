from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest
from git import Actor, Repo

from hookci.config import HookSettings
from hookci.errors import ReportError
from hookci.models import BuildResult, BuildStatus
from hookci.status import StatusAck

AUTHOR = Actor("hookci", "hookci@example.com")


@pytest.fixture
def settings(tmp_path: Path) -> HookSettings:
    return HookSettings(
        workspace_root=tmp_path / "builds",
        output_root=tmp_path / "logs",
        access_token="token123",
        secret="s3cret",
        deploy_refs=["refs/heads/develop", "refs/heads/master"],
        install_command="true",
        test_command="true",
        build_timeout=30,
    )


@pytest.fixture
def upstream(tmp_path: Path) -> Repo:
    """A local repository standing in for the remote clone URL."""

    path = tmp_path / "upstream"
    repo = Repo.init(path)
    (path / "README.md").write_text("hello\n")
    repo.index.add(["README.md"])
    repo.index.commit("initial", author=AUTHOR, committer=AUTHOR)
    return repo


def push_commit(repo: Repo, name: str, content: str) -> str:
    path = Path(repo.working_tree_dir) / name
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(f"add {name}", author=AUTHOR, committer=AUTHOR).hexsha


class StatusApi:
    """httpx handler recording status posts."""

    def __init__(self, status_code: int = 201, body: str = '{"id": 1}') -> None:
        self.status_code = status_code
        self.body = body
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)

    @property
    def posted(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    @property
    def states(self) -> List[str]:
        return [data["state"] for data in self.posted]


class RecordingReporter:
    """StatusReporter stand-in; optionally fails every report."""

    def __init__(self, journal: Optional[list] = None, fail: bool = False) -> None:
        self.calls: list[tuple[Any, BuildStatus]] = []
        self.journal = journal if journal is not None else []
        self.fail = fail

    async def report(self, target, status: BuildStatus) -> StatusAck:
        self.calls.append((target, status))
        self.journal.append(f"report:{status.state.value}")
        if self.fail:
            raise ReportError("empty response", url=target.status_url())
        return StatusAck(url=target.status_url(), state=status.state.value, payload={"id": 1})

    @property
    def states(self) -> List[str]:
        return [status.state.value for _, status in self.calls]


class StubRunner:
    """BuildRunner stand-in returning a fixed exit code."""

    def __init__(self, exit_code: int = 0, journal: Optional[list] = None, error: Optional[Exception] = None) -> None:
        self.exit_code = exit_code
        self.journal = journal if journal is not None else []
        self.error = error
        self.calls: list[tuple[str, Path, Any]] = []

    def run(self, clone_url: str, workdir: Path, output_sink=None) -> BuildResult:
        self.calls.append((clone_url, workdir, output_sink))
        self.journal.append("run")
        if self.error is not None:
            raise self.error
        return BuildResult(exit_code=self.exit_code)


class RecordingHooks:
    def __init__(self) -> None:
        self.deployed: list = []
        self.failed: list = []

    async def deploy(self, target, output_path: Path) -> None:
        self.deployed.append((target, output_path))

    async def notify_failure(self, target, output_path: Path, status: BuildStatus) -> None:
        self.failed.append((target, output_path, status))


def push_event(ref: str = "refs/heads/develop", sha: str = "abc123", clone_url: str = "https://example.com/repo.git") -> dict:
    return {
        "ref": ref,
        "head_commit": {"id": sha},
        "repository": {
            "clone_url": clone_url,
            "statuses_url": "https://api.github.com/repos/acme/widget/statuses/{sha}",
        },
    }


def pull_request_event(sha: str = "def456", clone_url: str = "https://example.com/repo.git") -> dict:
    return {
        "action": "opened",
        "number": 7,
        "pull_request": {
            "head": {"sha": sha},
            "base": {"repo": {"clone_url": clone_url}},
            "statuses_url": f"https://api.github.com/repos/acme/widget/statuses/{sha}",
        },
    }
