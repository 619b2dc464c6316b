from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_TICK_RATE


class Settings(BaseSettings):
    """Runtime configuration, read from the environment (and ``.env`` if present)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 3000
    # Built frontend bundle served over HTTP; unknown paths fall back to its index.html.
    static_dir: Path = Path("dist")
    tick_rate: float = Field(default=DEFAULT_TICK_RATE, gt=0)
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
