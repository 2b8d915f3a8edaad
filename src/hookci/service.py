"""FastAPI application receiving GitHub push and pull_request deliveries."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .builder import BuildRunner
from .config import HookSettings
from .deploy import DeployGate, DeployHooks
from .errors import DispatchError
from .github import GitHubClient
from .logging_utils import configure_logging, log_event
from .models import BuildStatus, PullRequestTarget, commit_target_from_push, pull_request_target_from_event
from .pipeline import BuildPipeline
from .process import new_log_path
from .status import StatusReporter
from .webhook import decode_event

NOT_FOUND_MESSAGE = "No such location exists on github"


class DeliveryResponse(BaseModel):
    ok: bool = True
    event: str
    delivery: Optional[str] = None
    ignored: bool = False


class WebhookDispatcher:
    """Routes decoded deliveries: push to the deploy gate, pull_request to the pipeline."""

    def __init__(self, settings: HookSettings, pipeline: BuildPipeline, gate: DeployGate) -> None:
        self.settings = settings
        self.pipeline = pipeline
        self.gate = gate
        self.logger = configure_logging("dispatcher", level=settings.log_level)

    @classmethod
    def from_settings(
        cls,
        settings: HookSettings,
        *,
        client: Optional[GitHubClient] = None,
        hooks: Optional[DeployHooks] = None,
    ) -> "WebhookDispatcher":
        client = client or GitHubClient(
            settings.access_token,
            user_agent=settings.user_agent,
            timeout=settings.request_timeout,
        )
        reporter = StatusReporter(client, context=settings.status_context)
        pipeline = BuildPipeline(settings, reporter, BuildRunner(settings))
        gate = DeployGate(settings, pipeline, hooks=hooks)
        return cls(settings, pipeline, gate)

    async def aclose(self) -> None:
        await self.pipeline.reporter.client.close()

    async def handle_pull_request(self, target: PullRequestTarget) -> Optional[BuildStatus]:
        try:
            output_path = new_log_path(self.settings.output_root)
            return await self.pipeline.execute(target, output_path)
        except Exception:
            self.logger.exception("pull request build failed")
            return None

    def dispatch(self, event: str, payload: Dict[str, Any], background: BackgroundTasks, delivery: Optional[str]) -> DeliveryResponse:
        log_event(self.logger, "delivery_received", github_event=event, delivery=delivery)
        if event == "push":
            if self.gate.policy.allows(payload.get("ref")):
                # PayloadError here surfaces as a 404 before anything is scheduled.
                background.add_task(self.gate.build_and_deploy, commit_target_from_push(payload))
            else:
                background.add_task(self.gate.handle_push, payload)
        elif event == "pull_request":
            background.add_task(self.handle_pull_request, pull_request_target_from_event(payload))
        else:
            return DeliveryResponse(event=event, delivery=delivery, ignored=True)
        return DeliveryResponse(event=event, delivery=delivery)


def create_app(settings: Optional[HookSettings] = None, dispatcher: Optional[WebhookDispatcher] = None) -> FastAPI:
    settings = settings or HookSettings()
    dispatcher = dispatcher or WebhookDispatcher.from_settings(settings)
    app = FastAPI(title="hookci", version="0.1.0", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.dispatcher = dispatcher

    @app.exception_handler(StarletteHTTPException)
    async def _not_found(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(DispatchError)
    async def _rejected(request: Request, exc: DispatchError):
        log_event(dispatcher.logger, "delivery_rejected", path=request.url.path, reason=str(exc))
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)

    @app.post(settings.route, status_code=202)
    async def receive(request: Request, background: BackgroundTasks) -> JSONResponse:
        body = await request.body()
        event, payload = decode_event(request.headers, body, settings.secret)
        response = dispatcher.dispatch(event, payload, background, request.headers.get("X-GitHub-Delivery"))
        return JSONResponse(
            content=response.model_dump(),
            status_code=200 if response.ignored else 202,
            background=background,
        )

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await dispatcher.aclose()

    return app
