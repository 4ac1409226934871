from .config import ClientSettings, get_client_settings
from .sync import CanvasSyncClient, ConnectionState, ScriptEvent

__all__ = [
    "CanvasSyncClient",
    "ClientSettings",
    "ConnectionState",
    "ScriptEvent",
    "get_client_settings",
]
