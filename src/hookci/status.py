"""Report build progress to the commit status API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ReportError
from .github import GitHubClient
from .logging_utils import configure_logging, log_event
from .models import BuildStatus, BuildTarget


@dataclass
class StatusAck:
    url: str
    state: str
    payload: Dict[str, Any]


class StatusReporter:
    """Posts pending/success/failure for a commit or pull-request target."""

    def __init__(self, client: GitHubClient, *, context: Optional[str] = None, logger: Optional[logging.Logger] = None) -> None:
        self.client = client
        self.context = context
        self.logger = logger or configure_logging("status")

    async def report(self, target: BuildTarget, status: BuildStatus) -> StatusAck:
        url = target.status_url()
        try:
            payload = await self.client.create_status(url, status.state.value, status.description, self.context)
        except ReportError as err:
            log_event(
                self.logger,
                "status_report_failed",
                level=logging.WARNING,
                url=url,
                state=status.state.value,
                status_code=err.status_code,
                body=err.body,
            )
            raise
        log_event(self.logger, "status_updated", url=url, sha=target.sha, state=status.state.value)
        return StatusAck(url=url, state=status.state.value, payload=payload)
