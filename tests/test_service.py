from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from conftest import RecordingHooks, RecordingReporter, StubRunner, pull_request_event, push_event
from hookci.config import HookSettings
from hookci.deploy import DeployGate
from hookci.pipeline import BuildPipeline
from hookci.service import NOT_FOUND_MESSAGE, WebhookDispatcher, create_app
from hookci.webhook import sign_payload, verify_github_signature


@pytest.fixture
def parts(settings: HookSettings):
    reporter = RecordingReporter()
    runner = StubRunner(exit_code=0)
    hooks = RecordingHooks()
    pipeline = BuildPipeline(settings, reporter, runner)
    dispatcher = WebhookDispatcher(settings, pipeline, DeployGate(settings, pipeline, hooks=hooks))
    client = TestClient(create_app(settings, dispatcher))
    return client, reporter, runner, hooks


def deliver(client: TestClient, event: str, payload: dict, secret: str = "s3cret", path: str = "/webhook"):
    body = json.dumps(payload).encode()
    return client.post(
        path,
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-GitHub-Event": event,
            "X-GitHub-Delivery": "delivery-1",
            "X-Hub-Signature-256": sign_payload(body, secret),
        },
    )


def test_signature_verification() -> None:
    body = b'{"zen": "Keep it logically awesome."}'

    assert verify_github_signature(body, sign_payload(body, "s3cret"), "s3cret")
    assert verify_github_signature(body, sign_payload(body, "s3cret", "sha1"), "s3cret")
    assert not verify_github_signature(body, sign_payload(body, "other"), "s3cret")
    assert not verify_github_signature(body, None, "s3cret")
    assert not verify_github_signature(body, "md5=abc", "s3cret")


def test_push_to_deploy_ref_is_built(parts) -> None:
    client, reporter, runner, hooks = parts

    response = deliver(client, "push", push_event(ref="refs/heads/develop", sha="abc123"))

    assert response.status_code == 202
    assert response.json() == {"ok": True, "event": "push", "delivery": "delivery-1", "ignored": False}
    assert reporter.states == ["pending", "success"]
    assert len(runner.calls) == 1
    assert len(hooks.deployed) == 1


def test_push_to_other_ref_is_accepted_but_not_built(parts) -> None:
    client, reporter, runner, hooks = parts

    response = deliver(client, "push", push_event(ref="refs/heads/feature-x"))

    assert response.status_code == 202
    assert reporter.calls == []
    assert runner.calls == []


def test_pull_request_is_built_regardless_of_ref(parts, settings: HookSettings) -> None:
    client, reporter, runner, hooks = parts

    response = deliver(client, "pull_request", pull_request_event(sha="def456"))

    assert response.status_code == 202
    assert reporter.states == ["pending", "success"]
    assert runner.calls[0][1] == settings.workdir_for("def456")
    assert runner.calls[0][2].parent == settings.output_root
    assert hooks.deployed == []


def test_unsupported_event_is_ignored(parts) -> None:
    client, reporter, runner, _ = parts

    response = deliver(client, "issues", {"action": "opened"})

    assert response.status_code == 200
    assert response.json()["ignored"] is True
    assert runner.calls == []


def test_bad_signature_is_not_found(parts) -> None:
    client, reporter, runner, _ = parts

    response = deliver(client, "push", push_event(), secret="wrong")

    assert response.status_code == 404
    assert response.text == NOT_FOUND_MESSAGE
    assert runner.calls == []


def test_unknown_path_is_not_found(parts) -> None:
    client, *_ = parts

    response = deliver(client, "push", push_event(), path="/elsewhere")

    assert response.status_code == 404
    assert response.text == NOT_FOUND_MESSAGE
    assert client.get("/webhook").status_code == 404


def test_missing_event_header_is_not_found(parts) -> None:
    client, *_ = parts
    body = b"{}"

    response = client.post("/webhook", content=body, headers={"X-Hub-Signature-256": sign_payload(body, "s3cret")})

    assert response.status_code == 404


def test_healthz(parts) -> None:
    client, *_ = parts

    assert client.get("/healthz").json() == {"status": "ok"}


@pytest.mark.parametrize("path", ["/docs", "/redoc", "/openapi.json"])
def test_generated_docs_are_not_served(parts, path: str) -> None:
    client, *_ = parts

    response = client.get(path)

    assert response.status_code == 404
    assert response.text == NOT_FOUND_MESSAGE


def test_malformed_pull_request_is_not_found(parts) -> None:
    client, reporter, runner, _ = parts
    payload = pull_request_event()
    del payload["pull_request"]["head"]

    response = deliver(client, "pull_request", payload)

    assert response.status_code == 404
    assert response.text == NOT_FOUND_MESSAGE
    assert reporter.calls == []
    assert runner.calls == []


def test_malformed_push_to_deploy_ref_is_not_found(parts) -> None:
    client, reporter, runner, hooks = parts
    payload = push_event(ref="refs/heads/develop")
    del payload["head_commit"]

    response = deliver(client, "push", payload)

    assert response.status_code == 404
    assert response.text == NOT_FOUND_MESSAGE
    assert runner.calls == []
    assert hooks.deployed == [] and hooks.failed == []


def test_malformed_push_to_other_ref_is_accepted(parts) -> None:
    client, reporter, runner, _ = parts
    payload = push_event(ref="refs/heads/feature-x")
    del payload["head_commit"]

    response = deliver(client, "push", payload)

    assert response.status_code == 202
    assert runner.calls == []
