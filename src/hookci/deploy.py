"""Gate push events on the configured deploy refs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from .config import DeployPolicy, HookSettings
from .errors import PayloadError
from .logging_utils import configure_logging, log_event
from .models import BuildStatus, CommitTarget, commit_target_from_push
from .pipeline import BuildPipeline
from .process import new_log_path


class DeployHooks(Protocol):
    async def deploy(self, target: CommitTarget, output_path: Path) -> None:
        ...

    async def notify_failure(self, target: CommitTarget, output_path: Path, status: BuildStatus) -> None:
        ...


class LoggingDeployHooks:
    """Placeholder deploy sequence: records what would happen."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or configure_logging("deploy")

    async def deploy(self, target: CommitTarget, output_path: Path) -> None:
        log_event(self.logger, "deploy_requested", ref=target.ref, sha=target.sha, output=str(output_path))

    async def notify_failure(self, target: CommitTarget, output_path: Path, status: BuildStatus) -> None:
        log_event(
            self.logger,
            "deploy_skipped",
            level=logging.WARNING,
            ref=target.ref,
            sha=target.sha,
            exit_code=status.exit_code,
            output=str(output_path),
        )


class DeployGate:
    def __init__(
        self,
        settings: HookSettings,
        pipeline: BuildPipeline,
        *,
        policy: Optional[DeployPolicy] = None,
        hooks: Optional[DeployHooks] = None,
    ) -> None:
        self.settings = settings
        self.pipeline = pipeline
        self.policy = policy if policy is not None else settings.deploy_policy()
        self.hooks = hooks or LoggingDeployHooks()
        self.logger = configure_logging("deploy-gate", level=settings.log_level)

    async def handle_push(self, event: Mapping[str, Any]) -> Optional[BuildStatus]:
        """Build and deploy a push to a deploy ref; ignore every other push.

        Never raises: a bad build must not take the listener down.
        """

        ref = event.get("ref")
        if not self.policy.allows(ref):
            log_event(self.logger, "push_ignored", ref=ref)
            return None
        try:
            target = commit_target_from_push(event)
        except PayloadError:
            self.logger.exception("malformed push for ref %s", ref)
            return None
        return await self.build_and_deploy(target)

    async def build_and_deploy(self, target: CommitTarget) -> Optional[BuildStatus]:
        """Run the pipeline for an allowed push, then deploy or report the failure."""

        try:
            output_path = new_log_path(self.settings.output_root)
            status = await self.pipeline.execute(target, output_path)
            if status.succeeded:
                await self.hooks.deploy(target, output_path)
            else:
                await self.hooks.notify_failure(target, output_path, status)
            return status
        except Exception:
            self.logger.exception("push handling failed for ref %s", target.ref)
            return None
