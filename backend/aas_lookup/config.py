"""
Application configuration using Pydantic Settings.

Supports environment variables and .env files for configuration.
"""

from functools import lru_cache
import json
from pathlib import Path
from typing import Annotated, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode


def _parse_list(value):
    """Accept a JSON array or a comma separated string."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
                if isinstance(parsed, list):
                    return [str(item).strip() for item in parsed if str(item).strip()]
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    workers: int = 1

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://localhost:5173"]

    # Asset files loaded at startup (glob patterns)
    asset_files: Annotated[list[str], NoDecode] = []
    require_asset_files: bool = False

    # Retained copies of documents loaded from bytes
    temp_dir: Path | None = None

    # External fetch
    fetch_timeout_seconds: float = 30.0
    max_download_size_mb: int = 50

    @field_validator("cors_origins", "asset_files", mode="before")
    @classmethod
    def parse_list(cls, v):
        return _parse_list(v)

    @field_validator("temp_dir", mode="before")
    @classmethod
    def parse_temp_dir(cls, v):
        if isinstance(v, str):
            return Path(v) if v.strip() else None
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
