"""Command line entry point: run the listener or register the webhook."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import uvicorn

from .config import HookSettings
from .errors import ReportError
from .github import GitHubClient
from .logging_utils import configure_logging, log_event
from .service import create_app


def serve(settings: HookSettings) -> int:
    logger = configure_logging("main", level=settings.log_level)
    log_event(logger, "listener_starting", host=settings.host, port=settings.port, path=settings.route)
    # uvicorn exits the process when the port cannot be bound
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


async def register_hook(settings: HookSettings, hooks_url: str, callback_url: str) -> dict:
    client = GitHubClient(settings.access_token, user_agent=settings.user_agent, timeout=settings.request_timeout)
    try:
        return await client.create_webhook(hooks_url, callback_url, settings.secret)
    finally:
        await client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hookci", description="Minimal GitHub webhook CI trigger")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_cmd = sub.add_parser("serve", help="Listen for webhook deliveries")
    serve_cmd.add_argument("--host", default=None)
    serve_cmd.add_argument("--port", type=int, default=None)

    hook_cmd = sub.add_parser("register-hook", help="Create the push/pull_request webhook on a repository")
    hook_cmd.add_argument("hooks_url", help="e.g. https://api.github.com/repos/<owner>/<repo>/hooks")
    hook_cmd.add_argument("callback_url", help="Public URL of this listener, including the webhook path")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = HookSettings()

    if args.command == "serve":
        overrides = {key: value for key, value in (("host", args.host), ("port", args.port)) if value is not None}
        if overrides:
            settings = settings.model_copy(update=overrides)
        return serve(settings)

    logger = configure_logging("main", level=settings.log_level)
    try:
        hook = asyncio.run(register_hook(settings, args.hooks_url, args.callback_url))
    except ReportError as err:
        log_event(logger, "webhook_not_created", url=err.url, status_code=err.status_code, body=err.body)
        return 1
    log_event(logger, "webhook_created", hook_id=hook.get("id"))
    print(json.dumps(hook, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
