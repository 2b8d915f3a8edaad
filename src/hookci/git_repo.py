"""Checkout management on top of GitPython."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from git import Git, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import CommandError

from .errors import BuildExecutionError
from .models import BuildStage

CHECKOUT_EXIT_CODE = 128


class GitCheckout:
    """Working copy of a remote repository used for one commit's builds."""

    def __init__(self, repo: Repo) -> None:
        self.repo = repo

    @property
    def worktree(self) -> Path:
        assert self.repo.working_tree_dir is not None
        return Path(self.repo.working_tree_dir)

    @classmethod
    def clone(cls, clone_url: str, destination: Path, *, timeout: Optional[float] = None) -> "GitCheckout":
        destination.mkdir(parents=True, exist_ok=True)
        try:
            Git(str(destination)).clone("--", clone_url, str(destination), kill_after_timeout=timeout)
            repo = Repo(str(destination))
        except (CommandError, InvalidGitRepositoryError, OSError) as err:
            # A half-written clone would be pulled, not re-cloned, next time.
            shutil.rmtree(destination, ignore_errors=True)
            raise BuildExecutionError(
                f"git clone {clone_url} failed: {_describe(err)}",
                stage=BuildStage.CHECKOUT.value,
                exit_code=_exit_code(err),
            ) from err
        return cls(repo)

    @classmethod
    def open(cls, path: Path) -> "GitCheckout":
        # The directory is trusted to hold the right repository; origin is not checked.
        try:
            return cls(Repo(str(path)))
        except (InvalidGitRepositoryError, NoSuchPathError) as err:
            raise BuildExecutionError(
                f"{path} is not a git checkout: {err}",
                stage=BuildStage.CHECKOUT.value,
                exit_code=CHECKOUT_EXIT_CODE,
            ) from err

    def pull(self, *, timeout: Optional[float] = None) -> str:
        try:
            return self.repo.git.pull("--ff-only", kill_after_timeout=timeout)
        except (CommandError, OSError) as err:
            raise BuildExecutionError(
                f"git pull in {self.worktree} failed: {_describe(err)}",
                stage=BuildStage.CHECKOUT.value,
                exit_code=_exit_code(err),
            ) from err

    @property
    def head(self) -> str:
        return self.repo.head.commit.hexsha


def _describe(err: Exception) -> str:
    stderr = getattr(err, "stderr", None)
    return stderr.strip() if isinstance(stderr, str) and stderr.strip() else str(err)


def _exit_code(err: Exception) -> int:
    status = getattr(err, "status", None)
    if isinstance(status, int) and status != 0:
        return status
    return CHECKOUT_EXIT_CODE
