"""
Call domain models.

TrackedCall is the orchestrator's in-memory view of a call it placed;
CallResult is what the end-of-call report delivered for a call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from voicecall.shared.exceptions import InvalidPhoneNumberError
from voicecall.telephony.events import WebhookEvent

# E.164: "+", a nonzero country-code digit, then 1-14 further digits
E164_PATTERN = re.compile(r"\+[1-9][0-9]{1,14}")
_SEPARATORS = re.compile(r"[\s-]")


def normalize_phone_number(phone_number: str) -> str:
    """Strip spaces and hyphens: "+81-90-1234-5678" -> "+819012345678"."""
    return _SEPARATORS.sub("", phone_number)


def is_valid_phone_number(phone_number: Any) -> bool:
    if not isinstance(phone_number, str):
        return False
    return E164_PATTERN.fullmatch(normalize_phone_number(phone_number)) is not None


class TrackedCallStatus(str, Enum):
    """Locally tracked call states."""

    INITIATED = "initiated"
    COMPLETED = "completed"


@dataclass(frozen=True)
class CallRequest:
    """Validated request to place an outbound call."""

    phone_number: str
    template: str = "default"
    context: Mapping[str, str | int | float] = field(default_factory=dict)
    max_duration: int = 600

    def __post_init__(self) -> None:
        if not is_valid_phone_number(self.phone_number):
            raise InvalidPhoneNumberError(str(self.phone_number))

    @property
    def normalized_phone_number(self) -> str:
        return normalize_phone_number(self.phone_number)


@dataclass
class TrackedCall:
    call_id: str
    phone_number: str
    template: str
    context: dict[str, Any]
    assistant_id: str
    status: TrackedCallStatus = TrackedCallStatus.INITIATED
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: datetime | None = None

    def mark_completed(self, ended_at: datetime | None = None) -> None:
        self.status = TrackedCallStatus.COMPLETED
        self.ended_at = ended_at or datetime.now(timezone.utc)


@dataclass(frozen=True)
class CallResult:
    call_id: str
    transcript: str | None = None
    messages: tuple[dict[str, Any], ...] = ()
    structured_data: dict[str, Any] | None = None
    summary: str | None = None
    duration: float | None = None
    cost: float | None = None
    ended_reason: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_event(cls, event: WebhookEvent) -> CallResult:
        """Fold an end-of-call-report into a CallResult.

        Report-level fields win over the nested call object when both exist.
        """
        message = event.message
        call = event.call
        artifact = message.get("artifact") or {}
        analysis = message.get("analysis") or {}

        return cls(
            call_id=event.call_id or "",
            transcript=artifact.get("transcript") or message.get("transcript"),
            messages=tuple(artifact.get("messages") or message.get("messages") or ()),
            structured_data=analysis.get("structuredData"),
            summary=analysis.get("summary") or message.get("summary"),
            duration=_first_present(message, call, ("durationSeconds", "duration")),
            cost=_first_present(message, call, ("cost",)),
            ended_reason=_first_present(message, call, ("endedReason",)),
        )


def _first_present(
    primary: Mapping[str, Any],
    fallback: Mapping[str, Any],
    keys: tuple[str, ...],
) -> Any:
    for source in (primary, fallback):
        for key in keys:
            if source.get(key) is not None:
                return source[key]
    return None
