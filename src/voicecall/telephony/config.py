"""
Voice provider and webhook configuration.

Both settings classes read the environment (and .env) with their own prefix:
VAPI_API_KEY, VAPI_PHONE_NUMBER_ID, WEBHOOK_URL, WEBHOOK_PORT, WEBHOOK_SECRET.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")


class VapiConfig(BaseSettings):
    """Vapi REST API configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="VAPI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: str = Field(default="")
    phone_number_id: str = Field(
        default="",
        description="Provider id of the outbound phone number calls are placed from",
    )
    base_url: str = Field(default="https://api.vapi.ai")
    timeout_seconds: float = Field(default=30.0, gt=0, le=300)


class WebhookConfig(BaseSettings):
    """Webhook relay configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="",
        description="Public URL the provider posts events to",
    )
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    # Unset disables signature verification on the relay
    secret: str = Field(default="")

    @property
    def server_mode(self) -> bool:
        """A public (non-local) webhook URL means the relay should listen."""
        if not self.url:
            return False
        return not any(marker in self.url for marker in LOCAL_HOST_MARKERS)


def get_vapi_config() -> VapiConfig:
    return VapiConfig()


def get_webhook_config() -> WebhookConfig:
    return WebhookConfig()
