from __future__ import annotations

import asyncio
import json
import os
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Tuple

import httpx
import uvicorn
from fastapi import FastAPI, Request
from git import Actor, Repo

from hookci.config import HookSettings
from hookci.service import create_app
from hookci.webhook import sign_payload

DEMO_ROOT = (Path(__file__).parent / "demo_workspaces").resolve()
SECRET = "demo-secret"
LISTENER = ("127.0.0.1", 7777)
STATUS_API = ("127.0.0.1", 7778)

status_app = FastAPI(title="Fake status API")
received: list[dict] = []


@status_app.post("/repos/demo/widget/statuses/{sha}")
async def record_status(sha: str, request: Request) -> dict:
    payload = await request.json()
    received.append({"sha": sha, **payload})
    print(f"status for {sha[:8]}: {payload['state']} ({payload['description']})")
    return {"id": len(received), **payload}


def make_upstream(root: Path) -> Repo:
    """Create a repository whose 'tests' are a shell one-liner."""

    repo = Repo.init(root)
    (root / "run-tests.sh").write_text("#!/bin/sh\necho 'all tests passed'\n")
    os.chmod(root / "run-tests.sh", 0o755)
    author = Actor("demo", "demo@example.com")
    repo.index.add(["run-tests.sh"])
    repo.index.commit("initial", author=author, committer=author)
    return repo


@asynccontextmanager
async def serving(app, address: Tuple[str, int]) -> AsyncIterator[None]:
    """Run `app` with uvicorn inside the demo's event loop until the block exits."""

    server = uvicorn.Server(uvicorn.Config(app, host=address[0], port=address[1], log_level="warning"))
    task = asyncio.create_task(server.serve())
    while not server.started:
        if task.done():
            task.result()
            raise RuntimeError(f"server on {address[0]}:{address[1]} exited before starting")
        await asyncio.sleep(0.05)
    try:
        yield
    finally:
        server.should_exit = True
        await task


async def main() -> None:
    shutil.rmtree(DEMO_ROOT, ignore_errors=True)
    upstream = make_upstream(DEMO_ROOT / "upstream")
    sha = upstream.head.commit.hexsha

    settings = HookSettings(
        secret=SECRET,
        access_token="demo-token",
        workspace_root=DEMO_ROOT / "builds",
        output_root=DEMO_ROOT / "logs",
        install_command="true",
        test_command="./run-tests.sh",
        deploy_refs=["refs/heads/develop"],
    )
    push = {
        "ref": "refs/heads/develop",
        "head_commit": {"id": sha},
        "repository": {
            "clone_url": str(DEMO_ROOT / "upstream"),
            "statuses_url": f"http://{STATUS_API[0]}:{STATUS_API[1]}/repos/demo/widget/statuses/{{sha}}",
        },
    }
    body = json.dumps(push).encode()

    async with serving(status_app, STATUS_API), serving(create_app(settings), LISTENER):
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                f"http://{LISTENER[0]}:{LISTENER[1]}{settings.route}",
                content=body,
                headers={
                    "Content-Type": "application/json",
                    "X-GitHub-Event": "push",
                    "X-GitHub-Delivery": "demo-1",
                    "X-Hub-Signature-256": sign_payload(body, SECRET),
                },
            )
            print("delivery answered", response.status_code, response.json())

        for _ in range(100):
            if len(received) >= 2:
                break
            await asyncio.sleep(0.1)

    for log in sorted(settings.output_root.glob("*.log")):
        print(f"--- {log.name}\n{log.read_text()}")


if __name__ == "__main__":
    asyncio.run(main())
