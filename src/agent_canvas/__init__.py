"""
agent-canvas: command relay and state synchronization for agent-driven canvases.

Agents and viewers connect to one relay as symmetric peers. The relay keeps
the authoritative element store and forwards each accepted command to every
other peer; viewers keep a local replica through `CanvasSyncClient`.
"""

from agent_canvas.canvas import Agent, CanvasElement, ChangeKind, ElementStore, StoreEvent
from agent_canvas.client import CanvasSyncClient, ConnectionState, ScriptEvent
from agent_canvas.protocol import Command, MalformedCommandError, parse_command

__version__ = "0.1.0"
__all__ = [
    "Agent",
    "CanvasElement",
    "CanvasSyncClient",
    "ChangeKind",
    "Command",
    "ConnectionState",
    "ElementStore",
    "MalformedCommandError",
    "ScriptEvent",
    "StoreEvent",
    "parse_command",
]
