"""
Vapi voice provider adapter.

Thin async wrapper around the Vapi REST API using httpx. Every operation is a
single attempt; failures are raised as VoiceProviderError subclasses.
"""

from __future__ import annotations

from typing import Any

import httpx

from voicecall.shared.logging import get_logger
from voicecall.telephony.config import VapiConfig, get_vapi_config
from voicecall.telephony.interface import (
    ProviderAPIError,
    ProviderConnectionError,
    VoiceProvider,
    VoiceProviderError,
)

logger = get_logger(__name__)


class VapiAdapter(VoiceProvider):
    """Vapi REST API adapter.

    The HTTP client is created lazily unless one is injected; an injected
    client is never closed by the adapter.
    """

    def __init__(
        self,
        config: VapiConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_vapi_config()
        if not self._config.api_key:
            raise ValueError("Vapi API key is required")
        self._base_url = self._config.base_url.rstrip("/")
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
            )
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        client = self._get_client()
        url = f"{self._base_url}{path}"

        try:
            response = await client.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            logger.error(
                "Vapi request failed",
                extra={"action": action, "method": method, "path": path, "error": str(e)},
            )
            raise ProviderConnectionError(f"{action}: No response from Vapi API") from e

        if response.is_error:
            error_data = _decode_error_body(response)
            detail = _error_message(error_data) or response.reason_phrase
            logger.error(
                "Vapi API error",
                extra={
                    "action": action,
                    "status_code": response.status_code,
                    "error": error_data,
                },
            )
            raise ProviderAPIError(
                f"{action}: {detail}",
                status_code=response.status_code,
                provider_response=error_data,
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise VoiceProviderError(
                f"{action}: {e}",
                status_code=response.status_code,
            ) from e

    async def create_assistant(self, config: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/assistant", "Failed to create assistant", json=config)

    async def get_assistant(self, assistant_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/assistant/{assistant_id}", "Failed to get assistant")

    async def delete_assistant(self, assistant_id: str) -> dict[str, Any]:
        return await self._request(
            "DELETE", f"/assistant/{assistant_id}", "Failed to delete assistant"
        )

    async def create_call(
        self,
        assistant_id: str,
        phone_number: str,
        phone_number_id: str,
    ) -> dict[str, Any]:
        payload = {
            "assistantId": assistant_id,
            "customer": {"number": phone_number},
            "phoneNumberId": phone_number_id,
        }
        return await self._request("POST", "/call", "Failed to make call", json=payload)

    async def get_call(self, call_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/call/{call_id}", "Failed to get call")

    async def list_calls(self, **params: Any) -> Any:
        return await self._request("GET", "/call", "Failed to list calls", params=params or None)

    async def update_call(self, call_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "PATCH", f"/call/{call_id}", "Failed to update call", json=updates
        )


def _decode_error_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def _error_message(error_data: Any) -> str | None:
    if not isinstance(error_data, dict):
        return None
    message = error_data.get("message")
    # Vapi reports validation failures as a list of messages
    if isinstance(message, list):
        return "; ".join(str(m) for m in message) or None
    return str(message) if message else None
