"""
Webhook event models for Vapi server messages.

Vapi posts an envelope of the form {"message": {"type": ..., ...}}; the type
discriminator selects the payload shape.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventType(str, Enum):
    """Server message types sent by Vapi."""

    TRANSCRIPT = "transcript"
    FUNCTION_CALL = "function-call"
    END_OF_CALL_REPORT = "end-of-call-report"
    STATUS_UPDATE = "status-update"
    HANG = "hang"
    SPEECH_UPDATE = "speech-update"
    CONVERSATION_UPDATE = "conversation-update"
    TOOL_CALLS = "tool-calls"


WILDCARD = "*"


class WebhookParseError(Exception):
    """Raised when a payload carries no usable message type."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class WebhookEvent(BaseModel):
    """Parsed webhook envelope.

    The message body is kept as-is; handlers pick the fields they need.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Message type discriminator")
    message: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Full decoded request body",
    )
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def event_type(self) -> WebhookEventType | None:
        try:
            return WebhookEventType(self.type)
        except ValueError:
            return None

    @property
    def call(self) -> dict[str, Any]:
        call = self.message.get("call")
        return call if isinstance(call, dict) else {}

    @property
    def call_id(self) -> str | None:
        call_id = self.call.get("id")
        return str(call_id) if call_id else None


def parse_webhook_event(payload: Any) -> WebhookEvent:
    """Build a WebhookEvent from a decoded request body.

    Raises:
        WebhookParseError: If message.type is absent.
    """
    if not isinstance(payload, dict):
        raise WebhookParseError("Webhook payload is not an object", payload)

    message = payload.get("message")
    if not isinstance(message, dict):
        raise WebhookParseError("Webhook payload has no message", payload)

    event_type = message.get("type")
    if not event_type:
        raise WebhookParseError("Webhook message has no type", payload)

    return WebhookEvent(type=str(event_type), message=message, payload=payload)
