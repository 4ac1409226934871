from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Sync client config, from CANVAS_CLIENT_* environment variables or `.env`."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CANVAS_CLIENT_", extra="ignore")

    url: str = "ws://localhost:8080/canvas"

    # attempt n waits reconnect_base_delay_s * n; give up after max attempts
    reconnect_base_delay_s: float = 1.0
    max_reconnect_attempts: int = 5
    open_timeout_s: float = 10.0

    # how long after connecting a relay bootstrap may still start; local commands
    # sent in this window are re-applied after the bootstrap clear
    bootstrap_wait_s: float = 5.0

    debug_log_msgs: bool = False


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    return ClientSettings()
