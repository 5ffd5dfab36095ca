"""
Pytest configuration and shared fixtures.

Provider traffic never leaves the process: orchestrator tests use
FakeProvider, adapter tests use httpx.MockTransport.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from voicecall.calls.service import CallOrchestrator
from voicecall.calls.templates import TemplateEngine
from voicecall.telephony.config import VapiConfig, WebhookConfig
from voicecall.telephony.interface import ProviderAPIError, VoiceProvider
from voicecall.telephony.webhooks.signature import compute_signature


class FakeProvider(VoiceProvider):
    """In-memory VoiceProvider recording every request."""

    def __init__(self) -> None:
        self.assistant_response: dict[str, Any] = {"id": "A1"}
        self.call_response: dict[str, Any] = {"id": "C1", "status": "queued"}
        self.calls: dict[str, dict[str, Any]] = {}
        self.failures: dict[str, Exception] = {}
        self.requests: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def requests_named(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for op, kwargs in self.requests if op == name]

    async def _record(self, name: str, **kwargs: Any) -> None:
        self.requests.append((name, kwargs))
        if name in self.failures:
            raise self.failures[name]

    async def create_assistant(self, config: dict[str, Any]) -> dict[str, Any]:
        await self._record("create_assistant", config=copy.deepcopy(config))
        return dict(self.assistant_response)

    async def get_assistant(self, assistant_id: str) -> dict[str, Any]:
        await self._record("get_assistant", assistant_id=assistant_id)
        return {"id": assistant_id}

    async def delete_assistant(self, assistant_id: str) -> dict[str, Any]:
        await self._record("delete_assistant", assistant_id=assistant_id)
        return {"id": assistant_id}

    async def create_call(
        self,
        assistant_id: str,
        phone_number: str,
        phone_number_id: str,
    ) -> dict[str, Any]:
        await self._record(
            "create_call",
            assistant_id=assistant_id,
            phone_number=phone_number,
            phone_number_id=phone_number_id,
        )
        return dict(self.call_response)

    async def get_call(self, call_id: str) -> dict[str, Any]:
        await self._record("get_call", call_id=call_id)
        if call_id not in self.calls:
            raise ProviderAPIError(
                "Failed to get call: Not Found",
                status_code=404,
                provider_response={"message": "Not Found"},
            )
        return copy.deepcopy(self.calls[call_id])

    async def list_calls(self, **params: Any) -> Any:
        await self._record("list_calls", **params)
        return list(self.calls.values())

    async def update_call(self, call_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        await self._record("update_call", call_id=call_id, updates=updates)
        return {"id": call_id, **updates}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def vapi_config() -> VapiConfig:
    return VapiConfig(
        api_key="test-api-key",
        phone_number_id="PN_TEST",
        base_url="https://api.vapi.test",
        timeout_seconds=5.0,
    )


@pytest.fixture
def webhook_config() -> WebhookConfig:
    return WebhookConfig(url="", host="127.0.0.1", port=3000, secret="")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def catalog_dir(tmp_path: Path) -> Path:
    (tmp_path / "default.json").write_text(
        json.dumps(
            {
                "name": "Test assistant",
                "firstMessage": "Hello {{name}}",
                "model": {
                    "messages": [{"role": "system", "content": "Call about {{purpose}}"}],
                },
            }
        ),
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def orchestrator(
    fake_provider: FakeProvider,
    vapi_config: VapiConfig,
    webhook_config: WebhookConfig,
    catalog_dir: Path,
) -> CallOrchestrator:
    return CallOrchestrator(
        provider=fake_provider,
        templates=TemplateEngine(catalog_dir),
        vapi_config=vapi_config,
        webhook_config=webhook_config,
    )


def end_of_call_report(call_id: str = "C1", **overrides: Any) -> dict[str, Any]:
    message: dict[str, Any] = {
        "type": "end-of-call-report",
        "endedReason": "customer-ended-call",
        "durationSeconds": 125,
        "cost": 0.42,
        "call": {"id": call_id},
        "artifact": {
            "transcript": "AI: Hello Taro\nUser: Hi",
            "messages": [
                {"role": "bot", "message": "Hello Taro"},
                {"role": "user", "message": "Hi"},
            ],
        },
        "analysis": {
            "summary": "Taro answered the call.",
            "structuredData": {"success": True},
        },
    }
    message.update(overrides)
    return {"message": message}


def signed_headers(secret: str, body: bytes) -> dict[str, str]:
    return {
        "content-type": "application/json",
        "x-vapi-signature": compute_signature(secret, body),
    }
