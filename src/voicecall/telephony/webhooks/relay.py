"""
Webhook relay for Vapi server messages.

Key constraints:
- signature is checked on the raw body before anything is parsed
- events without message.type are logged and dropped with a 200
- listener failures never change the HTTP response
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from voicecall.shared.logging import correlation_id_var, get_logger
from voicecall.telephony.config import WebhookConfig, get_webhook_config
from voicecall.telephony.events import (
    WebhookEvent,
    WebhookEventType,
    WebhookParseError,
    parse_webhook_event,
)
from voicecall.telephony.webhooks.registry import EventHandler, EventRegistry
from voicecall.telephony.webhooks.signature import SIGNATURE_HEADER, verify_signature

logger = get_logger(__name__)

WEBHOOK_PATH = "/vapi/webhook"
HEALTH_PATH = "/health"


class WebhookRelay:
    """HTTP listener that authenticates and dispatches provider events."""

    def __init__(
        self,
        config: WebhookConfig | None = None,
        registry: EventRegistry | None = None,
        lifespan: Any = None,
    ) -> None:
        self._config = config or get_webhook_config()
        self._lifespan = lifespan
        self.registry = registry or EventRegistry()
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None

        if not self._config.secret:
            logger.warning(
                "WEBHOOK_SECRET is not set; webhook signature verification is disabled",
            )

        self.app = self._build_app()

    @property
    def port(self) -> int:
        return self._config.port

    @property
    def is_running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    def on(self, event_type: str | WebhookEventType, handler: EventHandler) -> None:
        self.registry.on(event_type, handler)

    def on_any(self, handler: EventHandler) -> None:
        self.registry.on_any(handler)

    def _build_app(self) -> FastAPI:
        app = FastAPI(
            title="voicecall webhook relay",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan,
        )

        @app.middleware("http")
        async def log_requests(request: Request, call_next: Any) -> Response:
            logger.debug(
                "Webhook relay request",
                extra={"method": request.method, "path": request.url.path},
            )
            return await call_next(request)

        @app.exception_handler(StarletteHTTPException)
        async def _not_found(request: Request, exc: StarletteHTTPException) -> Response:
            # A wrong method on a known path is reported like an unknown path
            if exc.status_code in (
                status.HTTP_404_NOT_FOUND,
                status.HTTP_405_METHOD_NOT_ALLOWED,
            ):
                return JSONResponse(status_code=404, content={"error": "Not found"})
            return await http_exception_handler(request, exc)

        @app.get(HEALTH_PATH)
        async def health_check() -> dict[str, str]:
            return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

        @app.post(WEBHOOK_PATH)
        async def receive_webhook(request: Request) -> Response:
            body = await request.body()

            if self._config.secret:
                signature = request.headers.get(SIGNATURE_HEADER)
                if not verify_signature(self._config.secret, body, signature):
                    logger.error("Invalid webhook signature")
                    return PlainTextResponse("Invalid signature", status_code=401)

            try:
                payload = json.loads(body)
            except ValueError:
                logger.warning("Webhook body is not valid JSON")
                return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

            self.handle_payload(payload)
            return JSONResponse(content={"ok": True})

        return app

    def handle_payload(self, payload: Any) -> WebhookEvent | None:
        """Parse and dispatch one decoded webhook body.

        Returns:
            The dispatched event, or None when the payload was dropped.
        """
        try:
            event = parse_webhook_event(payload)
        except WebhookParseError:
            logger.warning("Received event without type", extra={"payload": payload})
            return None

        token = correlation_id_var.set(event.call_id)
        try:
            logger.info(
                "Webhook event",
                extra={"event_type": event.type, "call_id": event.call_id},
            )
            self.registry.emit(event)
            _log_event_details(event)
        finally:
            correlation_id_var.reset(token)
        return event

    async def start(self) -> None:
        """Bind the listening socket and serve in a background task."""
        if self.is_running:
            logger.warning("Webhook relay already running")
            return

        config = uvicorn.Config(
            self.app,
            host=self._config.host,
            port=self._config.port,
            log_config=None,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._serve(self._server))

        while not self._server.started and not self._serve_task.done():
            await asyncio.sleep(0.05)

        if self._serve_task.done():
            task = self._serve_task
            self._serve_task = None
            self._server = None
            task.result()

        logger.info(
            "Webhook relay listening",
            extra={
                "port": self._config.port,
                "endpoint": f"http://localhost:{self._config.port}{WEBHOOK_PATH}",
            },
        )

    async def _serve(self, server: uvicorn.Server) -> None:
        try:
            await server.serve()
        except SystemExit as exc:
            # uvicorn exits the process when the socket cannot be bound
            raise RuntimeError(
                f"Webhook relay could not listen on {self._config.host}:{self._config.port}"
            ) from exc

    async def stop(self) -> None:
        """Unbind the socket and wait for scheduled listeners to finish."""
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            try:
                await self._serve_task
            except asyncio.CancelledError:
                pass
            self._serve_task = None
        self._server = None

        await self.registry.wait_for_listeners()
        logger.info("Webhook relay stopped")


def _log_event_details(event: WebhookEvent) -> None:
    message = event.message
    match event.event_type:
        case WebhookEventType.TRANSCRIPT:
            logger.info(
                "Transcript turn",
                extra={"role": message.get("role"), "text": message.get("transcript")},
            )
        case WebhookEventType.FUNCTION_CALL:
            function_call = message.get("functionCall") or {}
            logger.info(
                "Function call requested",
                extra={
                    "function": function_call.get("name"),
                    "parameters": function_call.get("parameters"),
                },
            )
        case WebhookEventType.END_OF_CALL_REPORT:
            call = event.call
            logger.info(
                "Call ended",
                extra={
                    "call_id": event.call_id,
                    "ended_reason": message.get("endedReason") or call.get("endedReason"),
                    "duration_seconds": message.get("durationSeconds", call.get("duration")),
                    "cost": message.get("cost", call.get("cost")),
                },
            )
        case WebhookEventType.STATUS_UPDATE:
            logger.info("Call status update", extra={"status": message.get("status")})
        case _:
            pass
