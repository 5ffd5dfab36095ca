"""
Voice provider interface definition.

One coroutine per provider resource action. Implementations return the
provider's decoded JSON untouched and never retry.
"""

from abc import ABC, abstractmethod
from typing import Any


class VoiceProviderError(Exception):
    """Base exception for voice provider errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        provider_response: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider_response = provider_response


class ProviderConnectionError(VoiceProviderError):
    """No response could be obtained from the provider."""


class ProviderAPIError(VoiceProviderError):
    """The provider answered with a non-success status."""


class VoiceProvider(ABC):
    """Abstract interface for the hosted voice-AI provider."""

    @abstractmethod
    async def create_assistant(self, config: dict[str, Any]) -> dict[str, Any]:
        """Create an assistant from a rendered call-script config."""
        ...

    @abstractmethod
    async def get_assistant(self, assistant_id: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def delete_assistant(self, assistant_id: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def create_call(
        self,
        assistant_id: str,
        phone_number: str,
        phone_number_id: str,
    ) -> dict[str, Any]:
        """Place an outbound call to phone_number using assistant_id."""
        ...

    @abstractmethod
    async def get_call(self, call_id: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def list_calls(self, **params: Any) -> Any:
        """List calls; params are passed through as query parameters."""
        ...

    @abstractmethod
    async def update_call(self, call_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
