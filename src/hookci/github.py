"""GitHub REST client used for commit statuses and webhook registration."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .errors import ReportError


class GitHubClient:
    """Thin wrapper over a shared httpx client, authenticated with an access token."""

    def __init__(
        self,
        access_token: str,
        *,
        user_agent: str = "hookci",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.headers = {
            "User-Agent": user_agent,
            "Content-Type": "application/json",
        }
        self.client = httpx.AsyncClient(headers=self.headers, timeout=timeout, transport=transport)

    async def close(self):
        """Close the underlying httpx client."""
        await self.client.aclose()

    async def post_json(self, url: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """POST `data` to `url` and return the decoded JSON body, or raise `ReportError`."""
        params = {"access_token": self.access_token} if self.access_token else None
        try:
            response = await self.client.post(url, json=data, params=params)
        except httpx.HTTPError as err:
            raise ReportError(f"Request to {url} failed: {err}", url=url) from err

        body = response.text
        if response.is_error:
            raise ReportError(
                f"{url} answered {response.status_code}",
                url=url,
                status_code=response.status_code,
                body=body,
            )
        if not body.strip():
            raise ReportError(
                f"{url} returned an empty response",
                url=url,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as err:
            raise ReportError(
                f"{url} returned a non-JSON body",
                url=url,
                status_code=response.status_code,
                body=body,
            ) from err
        if not payload:
            raise ReportError(f"{url} returned an empty payload", url=url, status_code=response.status_code, body=body)
        return payload

    async def create_status(self, statuses_url: str, state: str, description: str, context: Optional[str] = None) -> Dict[str, Any]:
        data = {"state": state, "description": description}
        if context:
            data["context"] = context
        return await self.post_json(statuses_url, data)

    async def create_webhook(
        self,
        hooks_url: str,
        callback_url: str,
        secret: str,
        events: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Register a JSON webhook for push and pull_request deliveries on a repository."""
        data = {
            "name": "web",
            "active": True,
            "events": events or ["push", "pull_request"],
            "config": {
                "url": callback_url,
                "content_type": "json",
                "secret": secret,
            },
        }
        return await self.post_json(hooks_url, data)
