"""
Runtime configuration.

Settings are read from environment variables (and an optional ``.env``
file) once, at startup, by the entry point and passed explicitly to the
application factory. Each field maps to the upper-cased variable of the
same name, e.g. ``redis_url`` to ``REDIS_URL``.
"""
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ledger_api.cache.ttl import CacheTTL


class Settings(BaseSettings):
    """
    Service configuration.

    Example:
        >>> settings = Settings()
        >>> settings.redis_url
        'redis://localhost:6379/0'
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    environment: str = "production"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(3000, ge=1, le=65535)

    cache_backend: Literal["redis", "memory"] = "redis"
    cache_default_ttl: int = Field(CacheTTL.DEFAULT.value, ge=0)

    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = Field(20, ge=1)
    redis_socket_timeout: float = Field(5.0, gt=0)
    redis_reconnect_attempts: int = Field(10, ge=1)
    redis_reconnect_max_delay: float = Field(3.0, gt=0)
    redis_reconnect_window: float = Field(60.0, gt=0)
