"""
Shared application exceptions.

Validation errors are raised before any provider request. "Not available"
errors mean the provider has not produced the artifact yet; callers poll
again instead of treating them as fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(eq=False)
class AppError(Exception):
    message: str = "Application error"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class NotAvailableError(AppError):
    pass


class InvalidPhoneNumberError(ValidationError):
    def __init__(self, phone_number: str) -> None:
        super().__init__(
            message="Invalid phone number format. Use E.164 format: +81-90-1234-5678",
            details={"phone_number": phone_number},
        )


class TemplateNotFoundError(NotFoundError):
    def __init__(self, template_name: str) -> None:
        super().__init__(
            message=f"Template not found: {template_name}",
            details={"template": template_name},
        )


class TranscriptNotAvailableError(NotAvailableError):
    def __init__(self, call_id: str) -> None:
        super().__init__(
            message="Transcript not available yet",
            details={"call_id": call_id},
        )


class StructuredDataNotAvailableError(NotAvailableError):
    def __init__(self, call_id: str) -> None:
        super().__init__(
            message="Structured data not available",
            details={"call_id": call_id},
        )
