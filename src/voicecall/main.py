"""
ASGI entry point serving the webhook relay.

Run with: uvicorn voicecall.main:app --port 3000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from voicecall.calls.service import CallOrchestrator
from voicecall.config import get_settings
from voicecall.shared.logging import get_logger, setup_logging
from voicecall.telephony.webhooks.relay import WebhookRelay

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create the relay application; the orchestrator is built at startup."""
    relay: WebhookRelay

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging()
        settings = get_settings()
        logger.info("Application starting", extra={"env": settings.app_env})

        orchestrator = CallOrchestrator()
        orchestrator.attach(relay)
        app.state.orchestrator = orchestrator

        # Log every event, like the standalone relay
        relay.on_any(
            lambda event: logger.info(
                "Event received",
                extra={"event_type": event.type, "payload": event.payload},
            )
        )

        yield

        logger.info("Shutting down application")
        await relay.registry.wait_for_listeners()
        await orchestrator.shutdown()
        logger.info("Application shutdown complete")

    relay = WebhookRelay(lifespan=lifespan)
    return relay.app


app = create_app()
