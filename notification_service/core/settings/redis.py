"""Redis connection settings.

Redis holds the shared per-channel delivery counters, so every service
instance and every sweep draws from the same rate-limit window.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis connection for distributed rate limiting.

    Environment variables use REDIS_ prefix.
    Example: REDIS_URL="redis://localhost:6379/0"

    Leaving REDIS_URL unset runs without Redis; channel rate limits are then
    not enforced.
    """

    url: str | None = Field(
        default=None,
        description="Redis connection URL (redis[s]://[username:password@]host:port/db)",
    )

    max_connections: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Maximum Redis connection pool size",
    )

    socket_timeout: float = Field(
        default=2.0,
        ge=0.1,
        le=30.0,
        description="Redis socket timeout in seconds (for operations)",
    )

    socket_connect_timeout: float = Field(
        default=2.0,
        ge=0.1,
        le=30.0,
        description="Redis socket connection timeout in seconds (initial connection)",
    )

    key_prefix: str = Field(
        default="ratelimit",
        min_length=1,
        max_length=100,
        pattern=r"^[a-zA-Z0-9_:-]+$",
        description="Prefix for rate-limit counter keys",
    )

    startup_require_redis: bool = Field(
        default=False,
        description="Fail startup if Redis is configured but unreachable (False = run without limits)",
    )

    @computed_field
    @property
    def is_configured(self) -> bool:
        """Redis is used only when a URL is provided."""
        return self.url is not None

    def connection_pool_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``redis.asyncio.ConnectionPool.from_url``."""
        return {
            "max_connections": self.max_connections,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "decode_responses": True,
        }

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )


__all__ = ["RedisSettings"]
