"""Application configuration."""

import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    shopify_shop_domain: str
    shopify_admin_token: str
    shopify_api_version: str = "2024-07"
    shopify_publication_names: str | None = None
    watch_dir: Path = Path("Watch")
    archive_dir: Path = Path("Uploaded Photos")
    archive_mode: Literal["archive", "delete"] = "archive"
    product_limit: int = 30
    upload_timeout_seconds: float = 120.0
    http_timeout_seconds: float = 30.0
    normalize_max_size: int = 2048
    normalize_quality: int = 90
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_publication_names(raw: str | None) -> tuple[str, ...] | None:
    """Parse pipe-separated sales channel names from env."""
    if raw is None:
        return None
    names = tuple(chunk.strip() for chunk in raw.split("|") if chunk.strip())
    return names or None
