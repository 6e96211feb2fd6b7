# src/songlist_proxy/core/config.py

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class UpstreamConfig:
    """Connection details of the song-catalog API, injected into the service."""
    base_url: str
    api_name: str
    timeout: Optional[float] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # upstream catalog
    songlist_url: str = Field(..., description="Base URL of the song-catalog API")
    songlist_api_name: str = Field(..., description="API identifier sent as the `api` parameter")
    songlist_timeout: float = Field(30.0, ge=0, description="Upstream timeout in seconds, 0 disables it")

    # http server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: List[str] = Field(default=["*"])

    def upstream(self) -> UpstreamConfig:
        return UpstreamConfig(
            base_url=self.songlist_url,
            api_name=self.songlist_api_name,
            timeout=self.songlist_timeout or None,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
