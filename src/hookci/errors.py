"""Error types raised inside hookci."""

from __future__ import annotations

from typing import Optional


class HookError(RuntimeError):
    pass


class ReportError(HookError):
    """The status API was unreachable or returned an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body


class BuildExecutionError(HookError):
    """A checkout or command step could not complete."""

    def __init__(self, message: str, *, stage: str, exit_code: int) -> None:
        super().__init__(message)
        self.stage = stage
        self.exit_code = exit_code


class DispatchError(HookError):
    pass


class PayloadError(DispatchError):
    pass
