"""Pending, build, final status: one pipeline run per commit or pull request."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from .builder import BuildRunner
from .config import HookSettings
from .errors import ReportError
from .logging_utils import configure_logging, log_event
from .models import BuildResult, BuildState, BuildStatus, BuildTarget
from .process import OutputSink
from .status import StatusAck, StatusReporter

ERRORED_EXIT_CODE = -1


class BuildPipeline:
    def __init__(self, settings: HookSettings, reporter: StatusReporter, runner: BuildRunner) -> None:
        self.settings = settings
        self.reporter = reporter
        self.runner = runner
        self.logger = configure_logging("pipeline", level=settings.log_level)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return self._locks[key]

    def _release_lock(self, key: str) -> None:
        # Dropped once no build holds or waits on it.
        self._lock_users[key] -= 1
        if not self._lock_users[key]:
            del self._lock_users[key]
            del self._locks[key]

    async def execute(self, target: BuildTarget, output_sink: OutputSink = None) -> BuildStatus:
        """Run the build for `target` and return the final status, carrying the exit code."""

        lock = self._lock_for(target.sha)
        try:
            async with lock:
                return await self._run(target, output_sink)
        finally:
            self._release_lock(target.sha)

    async def _run(self, target: BuildTarget, output_sink: OutputSink) -> BuildStatus:
        await self._report(target, BuildStatus.pending())
        workdir = self.settings.workdir_for(target.sha)
        log_event(self.logger, "build_started", kind=target.kind, sha=target.sha, workdir=str(workdir))
        try:
            result: BuildResult = await asyncio.get_running_loop().run_in_executor(
                None, self.runner.run, target.clone_url, workdir, output_sink
            )
        except Exception as err:
            self.logger.exception("build errored for %s", target.sha)
            status = BuildStatus(
                state=BuildState.FAILURE,
                description=f"Build errored: {err}"[:140],
                exit_code=ERRORED_EXIT_CODE,
            )
        else:
            status = BuildStatus.from_exit_code(result.exit_code)
            log_event(
                self.logger,
                "build_finished",
                sha=target.sha,
                exit_code=result.exit_code,
                failed_stage=result.failed_stage.value if result.failed_stage else None,
                timed_out=result.timed_out,
            )
        await self._report(target, status)
        return status

    async def _report(self, target: BuildTarget, status: BuildStatus) -> Optional[StatusAck]:
        # A lost status update never stops the build.
        try:
            return await self.reporter.report(target, status)
        except ReportError as err:
            log_event(
                self.logger,
                "status_not_reported",
                level=logging.WARNING,
                sha=target.sha,
                state=status.state.value,
                error=str(err),
            )
            return None
