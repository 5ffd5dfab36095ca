"""
Outbound call orchestration.

CallOrchestrator owns the in-memory call tracking: every TrackedCall and
CallResult lives exactly as long as the orchestrator instance. All mutations
happen on the event loop, so the maps need no locking.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Mapping

from voicecall.calls.functions import FunctionRegistry
from voicecall.calls.models import CallRequest, CallResult, TrackedCall
from voicecall.calls.templates import TemplateEngine
from voicecall.shared.exceptions import (
    NotAvailableError,
    StructuredDataNotAvailableError,
    TranscriptNotAvailableError,
    ValidationError,
)
from voicecall.shared.logging import get_logger
from voicecall.telephony.config import VapiConfig, WebhookConfig, get_webhook_config
from voicecall.telephony.events import WebhookEvent, WebhookEventType, parse_webhook_event
from voicecall.telephony.factory import get_vapi_config, get_voice_provider
from voicecall.telephony.interface import VoiceProvider
from voicecall.telephony.webhooks.relay import WebhookRelay

logger = get_logger(__name__)


class CallOrchestrator:
    """Places calls, tracks them, and reacts to provider webhooks."""

    def __init__(
        self,
        provider: VoiceProvider | None = None,
        templates: TemplateEngine | None = None,
        functions: FunctionRegistry | None = None,
        vapi_config: VapiConfig | None = None,
        webhook_config: WebhookConfig | None = None,
    ) -> None:
        self._vapi_config = vapi_config or get_vapi_config()
        self._provider = provider or get_voice_provider()
        self._templates = templates or TemplateEngine()
        self._functions = functions or FunctionRegistry()
        self._webhook_config = webhook_config or get_webhook_config()
        self._active_calls: dict[str, TrackedCall] = {}
        self._call_results: dict[str, CallResult] = {}
        self.relay: WebhookRelay | None = None

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Start the webhook relay when a public webhook URL is configured."""
        logger.info("Initializing voice calling")

        if self._webhook_config.server_mode:
            relay = WebhookRelay(self._webhook_config)
            self.attach(relay)
            await relay.start()
            self.relay = relay
            logger.info("Webhook relay started", extra={"port": relay.port})

        logger.info("Voice calling initialized")

    def attach(self, relay: WebhookRelay) -> None:
        relay.on(WebhookEventType.END_OF_CALL_REPORT, self.handle_call_complete)
        relay.on(WebhookEventType.FUNCTION_CALL, self.handle_function_call)

    async def shutdown(self) -> None:
        if self.relay is not None:
            await self.relay.stop()
            self.relay = None
        await self._provider.close()

    # ------------------------------------------------------------------
    # Call placement and polling
    # ------------------------------------------------------------------

    async def make_call(
        self,
        phone_number: str,
        template: str = "default",
        context: Mapping[str, str | int | float] | None = None,
        max_duration: int = 600,
    ) -> dict[str, Any]:
        """Create an assistant from a template and dial phone_number with it.

        Returns:
            {"callId", "status": "initiated", "assistantId"}

        Raises:
            InvalidPhoneNumberError: phone_number is not E.164 after stripping
                spaces and hyphens.
            TemplateNotFoundError: No catalog entry named template.
            VoiceProviderError: Assistant or call creation failed.
        """
        logger.info(
            "Initiating call",
            extra={"phone_number": phone_number, "template": template},
        )

        try:
            request = CallRequest(
                phone_number=phone_number,
                template=template,
                context=dict(context or {}),
                max_duration=max_duration,
            )

            assistant_config = self._templates.load(request.template, request.context)
            if not isinstance(assistant_config, dict):
                raise ValidationError(f"Template {request.template} is not a JSON object")
            assistant_config["maxDurationSeconds"] = request.max_duration

            assistant = await self._provider.create_assistant(assistant_config)
            assistant_id = str(assistant["id"])
            logger.info("Created assistant", extra={"assistant_id": assistant_id})

            call = await self._place_call(assistant_id, request.normalized_phone_number)
            call_id = str(call["id"])
        except Exception:
            logger.exception("Error making call", extra={"template": template})
            raise

        self._active_calls[call_id] = TrackedCall(
            call_id=call_id,
            phone_number=request.normalized_phone_number,
            template=request.template,
            context=dict(request.context),
            assistant_id=assistant_id,
        )

        logger.info("Call initiated", extra={"call_id": call_id, "assistant_id": assistant_id})

        return {
            "callId": call_id,
            "status": "initiated",
            "assistantId": assistant_id,
        }

    async def _place_call(self, assistant_id: str, phone_number: str) -> dict[str, Any]:
        try:
            return await self._provider.create_call(
                assistant_id=assistant_id,
                phone_number=phone_number,
                phone_number_id=self._vapi_config.phone_number_id,
            )
        except Exception:
            await self._discard_assistant(assistant_id)
            raise

    async def _discard_assistant(self, assistant_id: str) -> None:
        """Delete an assistant whose call was never placed (best effort)."""
        try:
            await self._provider.delete_assistant(assistant_id)
        except Exception:
            logger.exception(
                "Failed to delete orphaned assistant",
                extra={"assistant_id": assistant_id},
            )
        else:
            logger.info("Deleted orphaned assistant", extra={"assistant_id": assistant_id})

    async def get_call_status(self, call_id: str) -> dict[str, Any]:
        """Live provider status merged with local tracking.

        Local tracking is optional: untracked calls report template and
        phoneNumber as None.
        """
        try:
            call = await self._provider.get_call(call_id)
        except Exception:
            logger.exception("Error getting call status", extra={"call_id": call_id})
            raise

        tracked = self._active_calls.get(call_id)

        return {
            "callId": call.get("id", call_id),
            "status": call.get("status"),
            "duration": call_duration_seconds(call.get("startedAt"), call.get("endedAt")),
            "cost": call.get("cost"),
            "endedReason": call.get("endedReason"),
            "template": tracked.template if tracked else None,
            "phoneNumber": tracked.phone_number if tracked else None,
        }

    async def get_transcript(self, call_id: str) -> dict[str, Any]:
        """Raises TranscriptNotAvailableError while the call is still running."""
        try:
            call = await self._provider.get_call(call_id)

            artifact = call.get("artifact") or {}
            if artifact.get("transcript"):
                return {
                    "callId": call.get("id", call_id),
                    "transcript": artifact["transcript"],
                    "messages": artifact.get("messages") or [],
                }

            result = self._call_results.get(call_id)
            if result is not None and result.transcript:
                return {
                    "callId": call_id,
                    "transcript": result.transcript,
                    "messages": list(result.messages),
                }

            raise TranscriptNotAvailableError(call_id)
        except NotAvailableError:
            logger.info("Transcript not available yet", extra={"call_id": call_id})
            raise
        except Exception:
            logger.exception("Error getting transcript", extra={"call_id": call_id})
            raise

    async def get_structured_data(self, call_id: str) -> dict[str, Any]:
        """Raises StructuredDataNotAvailableError until analysis has run."""
        try:
            call = await self._provider.get_call(call_id)

            analysis = call.get("analysis") or {}
            if analysis.get("structuredData") is not None:
                return {
                    "callId": call.get("id", call_id),
                    "structuredData": analysis["structuredData"],
                    "summary": analysis.get("summary"),
                }

            result = self._call_results.get(call_id)
            if result is not None and result.structured_data is not None:
                return {
                    "callId": call_id,
                    "structuredData": result.structured_data,
                    "summary": result.summary,
                }

            raise StructuredDataNotAvailableError(call_id)
        except NotAvailableError:
            logger.info("Structured data not available", extra={"call_id": call_id})
            raise
        except Exception:
            logger.exception("Error getting structured data", extra={"call_id": call_id})
            raise

    async def list_calls(self, **params: Any) -> Any:
        return await self._provider.list_calls(**params)

    def get_tracked_call(self, call_id: str) -> TrackedCall | None:
        return self._active_calls.get(call_id)

    def get_call_result(self, call_id: str) -> CallResult | None:
        return self._call_results.get(call_id)

    # ------------------------------------------------------------------
    # Webhook handlers
    # ------------------------------------------------------------------

    def handle_call_complete(self, event: WebhookEvent | dict[str, Any]) -> CallResult | None:
        """Store the end-of-call report and mark the tracked call completed.

        A repeated report for the same call replaces the stored result and
        end time (last write wins).
        """
        if not isinstance(event, WebhookEvent):
            event = parse_webhook_event(event)

        call_id = event.call_id
        if not call_id:
            logger.warning("End-of-call report without call id")
            return None

        logger.info("Call completed", extra={"call_id": call_id})

        if call_id in self._call_results:
            logger.info("Replacing stored call result", extra={"call_id": call_id})

        result = CallResult.from_event(event)
        self._call_results[call_id] = result

        tracked = self._active_calls.get(call_id)
        if tracked is not None:
            tracked.mark_completed()

        logger.info("Call results stored", extra={"call_id": call_id})
        return result

    async def handle_function_call(self, event: WebhookEvent | dict[str, Any]) -> Any:
        """Run the requested function and report its result to the call.

        Failures are logged only; the provider receives nothing in that case.
        """
        if not isinstance(event, WebhookEvent):
            event = parse_webhook_event(event)

        function_call = event.message.get("functionCall") or {}
        name = function_call.get("name")
        parameters = function_call.get("parameters") or {}
        call_id = event.call_id

        logger.info("Function call", extra={"function": name, "call_id": call_id})

        try:
            result = await self._functions.execute(name, parameters)
            if not call_id:
                raise ValidationError("Function call event has no call id")
            await self._provider.update_call(call_id, {"functionReturn": result})
        except Exception:
            logger.exception(
                "Error executing function",
                extra={"function": name, "call_id": call_id},
            )
            return None

        return result


def call_duration_seconds(started_at: str | None, ended_at: str | None) -> int | None:
    """Whole seconds between two ISO-8601 timestamps, or None if not ended."""
    if not ended_at or not started_at:
        return None
    start = _parse_timestamp(started_at)
    end = _parse_timestamp(ended_at)
    return math.floor((end - start).total_seconds() + 0.5)


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
