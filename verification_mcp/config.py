from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Settings(BaseSettings):
    """
    Central configuration for the insurance verification gateway.

    All values are loaded from environment variables with `VERIFY_MCP_` prefix.
    You can also use a `.env` file in the working directory during development.
    Settings are frozen: they are read once at process start and never mutated.
    """

    model_config = SettingsConfigDict(
        env_prefix="VERIFY_MCP_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # General
    env: str = "dev"
    server_port: int = 4010
    server_host: str = "0.0.0.0"
    transport: Literal["http", "stdio"] = "http"
    log_level: str = "INFO"

    # Access control
    api_keys: str = ""  # comma separated allow-list
    allow_agent_unmasked: bool = False
    cors_origins: str = ""  # comma separated

    # Record store
    store_backend: Literal["firestore", "memory"] = "firestore"
    seed_file: Optional[str] = None

    # Firebase
    firebase_project_id: Optional[str] = None
    firebase_credentials_file: Optional[str] = None

    # Identity used by the stdio transport, which carries no HTTP headers
    stdio_api_key: Optional[str] = None
    stdio_actor_id: str = "stdio-agent"
    stdio_actor_type: str = "agent"
    stdio_allow_unmasked: bool = False

    @property
    def api_key_list(self) -> Tuple[str, ...]:
        return _split_csv(self.api_keys)

    @property
    def cors_origin_list(self) -> Tuple[str, ...]:
        return _split_csv(self.cors_origins)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings from environment."""
    return Settings()
