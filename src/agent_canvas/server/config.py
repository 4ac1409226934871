from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Relay runtime config.

    - Loaded from environment variables (CANVAS_RELAY_*)
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CANVAS_RELAY_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8080
    ws_path: str = "/canvas"

    # Send clearCanvas + rebuild commands to every newly connected peer.
    # Off = no snapshot; late joiners start empty.
    bootstrap_snapshot: bool = True

    # Per-peer outbound buffer (commands). A peer that falls this far behind
    # is either disconnected or loses its oldest queued commands.
    peer_max_pending: int = 1024
    peer_overflow_policy: Literal["disconnect", "drop_oldest"] = "disconnect"

    # Built-in demo agent that publishes sample activity.
    demo_agent_enabled: bool = False
    demo_interval_s: float = 15.0

    # Debugging / logging
    debug_log_msgs: bool = False
    log_level: str = "INFO"
    log_file: str | None = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
