from __future__ import annotations

import pytest

from conftest import pull_request_event, push_event
from hookci.config import DeployPolicy
from hookci.errors import PayloadError
from hookci.models import (
    BuildState,
    BuildStatus,
    commit_target_from_push,
    pull_request_target_from_event,
)


@pytest.mark.parametrize(
    ("exit_code", "state"),
    [(0, BuildState.SUCCESS), (1, BuildState.FAILURE), (127, BuildState.FAILURE)],
)
def test_exit_code_maps_to_state(exit_code: int, state: BuildState) -> None:
    status = BuildStatus.from_exit_code(exit_code)

    assert status.state is state
    assert status.exit_code == exit_code


def test_status_descriptions() -> None:
    assert BuildStatus.pending().payload() == {"state": "pending", "description": "Running build & tests"}
    assert BuildStatus.from_exit_code(0).description == "Build & test case execution success"
    assert BuildStatus.from_exit_code(2).description == "Build & tests failed"


def test_commit_target_substitutes_sha() -> None:
    target = commit_target_from_push(push_event(sha="abc123"))

    assert target.sha == "abc123"
    assert target.ref == "refs/heads/develop"
    assert target.status_url() == "https://api.github.com/repos/acme/widget/statuses/abc123"


def test_pull_request_target_uses_url_verbatim() -> None:
    event = pull_request_event(sha="def456")
    event["pull_request"]["statuses_url"] = "https://api.github.com/statuses/{sha}"
    target = pull_request_target_from_event(event)

    assert target.sha == "def456"
    assert target.number == 7
    assert target.clone_url == "https://example.com/repo.git"
    assert target.status_url() == "https://api.github.com/statuses/{sha}"


def test_missing_field_raises_payload_error() -> None:
    event = push_event()
    del event["head_commit"]

    with pytest.raises(PayloadError, match="head_commit.id"):
        commit_target_from_push(event)


def test_wrongly_typed_field_raises_payload_error() -> None:
    event = pull_request_event()
    event["pull_request"]["head"]["sha"] = ["not", "a", "sha"]

    with pytest.raises(PayloadError):
        pull_request_target_from_event(event)


def test_targets_are_immutable() -> None:
    target = commit_target_from_push(push_event())

    with pytest.raises(Exception):
        target.sha = "other"  # type: ignore[misc]


def test_deploy_policy() -> None:
    policy = DeployPolicy(refs=frozenset({"refs/heads/develop"}))

    assert policy.allows("refs/heads/develop")
    assert not policy.allows("refs/heads/feature-x")
    assert not policy.allows(None)
