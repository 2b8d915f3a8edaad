"""Materialize a checkout, install dependencies and run the test command."""

from __future__ import annotations

from pathlib import Path
from typing import List

from filelock import FileLock

from .config import HookSettings
from .errors import BuildExecutionError
from .git_repo import GitCheckout
from .logging_utils import configure_logging, log_event
from .models import BuildResult, BuildStage, StepResult
from .process import OutputSink, run_command, write_output


class BuildRunner:
    """Clone-or-pull, install, test. Blocking; call it from a worker thread."""

    def __init__(self, settings: HookSettings) -> None:
        self.settings = settings
        self.logger = configure_logging("builder", level=settings.log_level)

    def run(self, clone_url: str, workdir: Path, output_sink: OutputSink = None) -> BuildResult:
        workdir = Path(workdir)
        workdir.parent.mkdir(parents=True, exist_ok=True)
        output_path = output_sink if isinstance(output_sink, Path) else None
        steps: List[StepResult] = []
        with FileLock(str(workdir.parent / f"{workdir.name}.lock")):
            try:
                steps.append(self._checkout(clone_url, workdir, output_sink))
            except BuildExecutionError as err:
                write_output(output_sink, f"{err}\n")
                log_event(self.logger, "checkout_failed", workdir=str(workdir), error=str(err))
                steps.append(StepResult(stage=BuildStage.CHECKOUT, command=f"git checkout {clone_url}", exit_code=err.exit_code))
                return BuildResult(
                    exit_code=err.exit_code,
                    output_path=output_path,
                    steps=steps,
                    failed_stage=BuildStage.CHECKOUT,
                )

            for stage, command in (
                (BuildStage.INSTALL, self.settings.install_command),
                (BuildStage.TEST, self.settings.test_command),
            ):
                result = run_command(
                    command,
                    cwd=workdir,
                    timeout=self.settings.build_timeout,
                    sink=output_sink,
                )
                steps.append(StepResult(stage=stage, command=result.command, exit_code=result.exit_code))
                log_event(
                    self.logger,
                    "build_step",
                    stage=stage.value,
                    command=result.command,
                    exit_code=result.exit_code,
                    timed_out=result.timed_out,
                )
                if result.exit_code != 0:
                    return BuildResult(
                        exit_code=result.exit_code,
                        output_path=output_path,
                        steps=steps,
                        failed_stage=stage,
                        timed_out=result.timed_out,
                    )

        return BuildResult(exit_code=0, output_path=output_path, steps=steps)

    def _checkout(self, clone_url: str, workdir: Path, output_sink: OutputSink) -> StepResult:
        timeout = self.settings.checkout_timeout
        if not workdir.exists():
            write_output(output_sink, f"$ git clone {clone_url} {workdir}\n")
            GitCheckout.clone(clone_url, workdir, timeout=timeout)
            log_event(self.logger, "checkout_cloned", clone_url=clone_url, workdir=str(workdir))
            return StepResult(stage=BuildStage.CHECKOUT, command=f"git clone {clone_url}", exit_code=0)

        write_output(output_sink, f"$ git pull --ff-only ({workdir})\n")
        output = GitCheckout.open(workdir).pull(timeout=timeout)
        write_output(output_sink, f"{output}\n" if output else "")
        log_event(self.logger, "checkout_updated", workdir=str(workdir))
        return StepResult(stage=BuildStage.CHECKOUT, command="git pull --ff-only", exit_code=0)
