"""
Application configuration with environment-driven settings.
"""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CATALOG_DIR = Path(__file__).resolve().parent / "catalog"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "voicecall"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    # Call-script catalog
    catalog_dir: Path = Field(
        default=DEFAULT_CATALOG_DIR,
        description="Directory holding <template>.json call scripts",
    )


@lru_cache(maxsize=1)
def _get_settings_cached() -> Settings:
    return Settings()


def get_settings() -> Settings:
    # Under pytest the environment changes between tests, so skip the cache.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return Settings()
    return _get_settings_cached()
