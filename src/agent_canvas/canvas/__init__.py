from .elements import Agent, CanvasElement
from .store import ChangeKind, ElementStore, StoreEvent

__all__ = [
    "Agent",
    "CanvasElement",
    "ChangeKind",
    "ElementStore",
    "StoreEvent",
]
