"""Value objects passed between the dispatcher, pipeline and status reporter."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import PayloadError

PENDING_DESCRIPTION = "Running build & tests"
SUCCESS_DESCRIPTION = "Build & test case execution success"
FAILURE_DESCRIPTION = "Build & tests failed"


class BuildState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class BuildStage(str, Enum):
    CHECKOUT = "checkout"
    INSTALL = "install"
    TEST = "test"


class CommitTarget(BaseModel):
    """A pushed commit. `statuses_url` still carries the `{sha}` placeholder."""

    kind: Literal["commit"] = "commit"
    clone_url: str
    sha: str
    statuses_url: str
    ref: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def status_url(self) -> str:
        return self.statuses_url.replace("{sha}", self.sha)


class PullRequestTarget(BaseModel):
    """Head commit of a pull request, built from the base repository."""

    kind: Literal["pull_request"] = "pull_request"
    clone_url: str
    sha: str
    statuses_url: str
    number: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    def status_url(self) -> str:
        return self.statuses_url


BuildTarget = Union[CommitTarget, PullRequestTarget]


class BuildStatus(BaseModel):
    state: BuildState
    description: str
    exit_code: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def pending(cls) -> "BuildStatus":
        return cls(state=BuildState.PENDING, description=PENDING_DESCRIPTION)

    @classmethod
    def from_exit_code(cls, exit_code: int) -> "BuildStatus":
        if exit_code == 0:
            return cls(state=BuildState.SUCCESS, description=SUCCESS_DESCRIPTION, exit_code=0)
        return cls(state=BuildState.FAILURE, description=FAILURE_DESCRIPTION, exit_code=exit_code)

    @property
    def succeeded(self) -> bool:
        return self.state is BuildState.SUCCESS

    def payload(self) -> dict:
        return {"state": self.state.value, "description": self.description}


class StepResult(BaseModel):
    stage: BuildStage
    command: str
    exit_code: int


class BuildResult(BaseModel):
    exit_code: int
    output_path: Optional[Path] = None
    steps: List[StepResult] = Field(default_factory=list)
    failed_stage: Optional[BuildStage] = None
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def summary(self) -> str:
        lines = []
        for step in self.steps:
            status = "PASS" if step.exit_code == 0 else "FAIL"
            lines.append(f"[{status}] {step.stage.value}: {step.command} (exit {step.exit_code})")
        if self.timed_out:
            lines.append("build timed out")
        return "\n".join(lines)


def _lookup(payload: Mapping[str, Any], dotted: str) -> Any:
    node: Any = payload
    for key in dotted.split("."):
        if not isinstance(node, Mapping) or node.get(key) in (None, ""):
            raise PayloadError(f"Missing field {dotted!r} in event payload")
        node = node[key]
    return node


def commit_target_from_push(payload: Mapping[str, Any]) -> CommitTarget:
    try:
        return CommitTarget(
            clone_url=_lookup(payload, "repository.clone_url"),
            sha=_lookup(payload, "head_commit.id"),
            statuses_url=_lookup(payload, "repository.statuses_url"),
            ref=payload.get("ref"),
        )
    except ValidationError as err:
        raise PayloadError(f"Malformed push payload: {err}") from err


def pull_request_target_from_event(payload: Mapping[str, Any]) -> PullRequestTarget:
    number = payload.get("number")
    if number is None and isinstance(payload.get("pull_request"), Mapping):
        number = payload["pull_request"].get("number")
    try:
        return PullRequestTarget(
            clone_url=_lookup(payload, "pull_request.base.repo.clone_url"),
            sha=_lookup(payload, "pull_request.head.sha"),
            statuses_url=_lookup(payload, "pull_request.statuses_url"),
            number=number,
        )
    except ValidationError as err:
        raise PayloadError(f"Malformed pull_request payload: {err}") from err
