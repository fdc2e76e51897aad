"""HTTP surface for Slack Events API callbacks and the personal token slash command."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Form, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from whisperer.app.runtime import AppRuntime
from whisperer.errors import ConfigurationError, CredentialStoreError, TokenValidationError

RETRY_NUM_HEADER = "X-Slack-Retry-Num"
RETRY_REASON_HEADER = "X-Slack-Retry-Reason"
SUPPORTED_EVENTS = frozenset({"message", "app_mention"})


def create_app(runtime: AppRuntime) -> FastAPI:
    """Build the FastAPI app bound to ``runtime``; the gateway is closed on shutdown."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info("server.start")
        yield
        await runtime.aclose()
        logger.info("server.stopped")

    app = FastAPI(title="whisperer", lifespan=lifespan)
    app.state.runtime = runtime

    @app.middleware("http")
    async def skip_slack_retries(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        retry_num = request.headers.get(RETRY_NUM_HEADER)
        if retry_num:
            logger.info(
                "server.slack.retry_skipped retry_num={} reason={}",
                retry_num,
                request.headers.get(RETRY_REASON_HEADER, ""),
            )
            return PlainTextResponse("ok (retry skipped)")
        return await call_next(request)

    async def handle_events(request: Request, background: BackgroundTasks) -> Response:
        try:
            payload: Any = await request.json()
        except ValueError:
            logger.error("server.slack.invalid_payload")
            return JSONResponse({"error": "failed to parse slack event"})
        if not isinstance(payload, dict):
            logger.error("server.slack.invalid_payload")
            return JSONResponse({"error": "failed to parse slack event"})

        payload_type = payload.get("type")
        if payload_type == "url_verification":
            return PlainTextResponse(str(payload.get("challenge", "")))

        if payload_type != "event_callback":
            logger.warning("server.slack.unsupported_payload type={}", payload_type)
            return JSONResponse({"error": "unsupported event type"})

        event = payload.get("event") or {}
        event_type = event.get("type")
        if event_type not in SUPPORTED_EVENTS:
            logger.warning("server.slack.unsupported_event type={}", event_type)
            return JSONResponse({"error": "unsupported event type"})

        try:
            channel = runtime.slack_channel()
        except ConfigurationError as exc:
            logger.error("server.slack.misconfigured error={}", exc)
            return JSONResponse({"error": "slack channel is not configured"}, status_code=500)
        background.add_task(channel.run_turn, event)
        return JSONResponse({"message": "ok"})

    app.add_api_route("/", handle_events, methods=["POST"])
    app.add_api_route("/slack/events", handle_events, methods=["POST"])

    @app.post("/setup-personal-token")
    async def setup_personal_token(
        user_id: str = Form(""),
        text: str = Form(""),
        channel_id: str = Form(""),
    ) -> JSONResponse:
        if not user_id or not text or not channel_id:
            logger.error("server.token.missing_fields")
            return JSONResponse({"error": "Missing required fields"})
        try:
            await runtime.tokens.set_token(user_id, text)
        except TokenValidationError as exc:
            logger.error("server.token.invalid user={} error={}", user_id, exc)
            return JSONResponse({"error": f"Validation failed due to {exc}"})
        except CredentialStoreError as exc:
            logger.error("server.token.store_failed user={} error={}", user_id, exc)
            return JSONResponse({"error": f"Failed to store token due to {exc}"})
        return JSONResponse({"message": "Token successfully stored"})

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
