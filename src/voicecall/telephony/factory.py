"""
Voice provider factory.

Single source of truth for configuration:
- use VapiConfig (Pydantic Settings) which loads from OS env + .env
- never read raw os.getenv("VAPI_*") here
"""

from __future__ import annotations

from functools import lru_cache

from voicecall.shared.logging import get_logger
from voicecall.telephony.config import VapiConfig
from voicecall.telephony.config import get_vapi_config as _get_settings_vapi_config
from voicecall.telephony.interface import VoiceProvider
from voicecall.telephony.vapi_adapter import VapiAdapter

logger = get_logger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


@lru_cache(maxsize=1)
def get_vapi_config() -> VapiConfig:
    """Return cached VapiConfig loaded from OS env + .env."""
    return _get_settings_vapi_config()


@lru_cache(maxsize=1)
def get_voice_provider() -> VoiceProvider:
    """Create and cache the voice provider using VapiConfig."""
    cfg = get_vapi_config()

    logger.info(
        "Vapi config resolved",
        extra={
            "api_key": _mask(cfg.api_key),
            "phone_number_id": cfg.phone_number_id,
            "base_url": cfg.base_url,
            "timeout_seconds": cfg.timeout_seconds,
        },
    )

    return VapiAdapter(cfg)
