from __future__ import annotations

import copy
import hashlib
from dataclasses import dataclass, field
from typing import Any, Optional

from agent_canvas.protocol.constants import E_TEXT, SYSTEM_AGENT_ID
from agent_canvas.protocol.messages import ElementPayload, Position, Size

DEFAULT_POSITION = {"x": 0.0, "y": 0.0}
DEFAULT_SIZE = {"width": 100.0, "height": 100.0}

# Payload fields that map onto CanvasElement attributes instead of the content bag.
ELEMENT_LEVEL_FIELDS = frozenset(
    {
        "element_type",
        "content",
        "position",
        "size",
        "is_interactive",
        "is_visible",
        "agent_id",
        "metadata",
        "z_index",
    }
)

AGENT_COLORS = (
    "#4a9eff",
    "#51cf66",
    "#ff7b72",
    "#fcc419",
    "#b197fc",
    "#22b8cf",
    "#ff922b",
    "#f06595",
)


@dataclass
class CanvasElement:
    id: str
    type: str = E_TEXT
    position: Position = field(default_factory=lambda: Position(**DEFAULT_POSITION))
    size: Size = field(default_factory=lambda: Size(**DEFAULT_SIZE))
    # open, type-dependent field bag (text, url, styles, animation, rotation, ...)
    content: dict[str, Any] = field(default_factory=dict)
    agent_id: str = SYSTEM_AGENT_ID
    metadata: dict[str, Any] = field(default_factory=dict)
    is_visible: bool = True
    is_interactive: bool = True
    z_index: int = 1
    last_updated: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """addElement payload that recreates this element on an empty replica."""
        return {
            "elementType": self.type,
            "position": self.position.to_wire(),
            "size": self.size.to_wire(),
            "content": dict(self.content),
            "agentId": self.agent_id,
            "metadata": dict(self.metadata),
            "isVisible": self.is_visible,
            "isInteractive": self.is_interactive,
            "zIndex": self.z_index,
        }


@dataclass
class Agent:
    """Presentation-only view of a producer, derived from the elements it owns."""

    id: str
    name: str
    color: str
    is_active: bool = True
    last_seen: Optional[str] = None
    elements: list[str] = field(default_factory=list)


def content_fields(payload: ElementPayload) -> dict[str, Any]:
    """
    Flatten a payload into content-bag entries (wire names).

    A mapping `content` merges key by key; a scalar `content` (text) is kept
    under "text". Extension fields, including known fields whose value could
    not be read, are kept as sent.
    """
    extra = payload.model_extra or {}
    bag = payload.model_dump(
        by_alias=True, exclude_none=True, exclude=set(ELEMENT_LEVEL_FIELDS) | set(extra)
    )
    bag.update(extra)
    if isinstance(payload.content, dict):
        bag.update(payload.content)
    elif payload.content is not None:
        bag["text"] = payload.content
    return copy.deepcopy(bag)


def element_from_payload(element_id: str, payload: ElementPayload, timestamp: Optional[str]) -> CanvasElement:
    el = CanvasElement(id=element_id, type=payload.element_type or E_TEXT, last_updated=timestamp)
    if payload.position is not None:
        el.position = payload.position.model_copy(deep=True)
    if payload.size is not None:
        el.size = payload.size.model_copy(deep=True)
    el.content = content_fields(payload)
    _apply_element_flags(el, payload)
    return el


def merge_payload(el: CanvasElement, payload: ElementPayload, timestamp: Optional[str]) -> None:
    """Shallow merge used by updateElement; position/size replace wholesale."""
    el.content.update(content_fields(payload))
    if payload.position is not None:
        el.position = payload.position.model_copy(deep=True)
    if payload.size is not None:
        el.size = payload.size.model_copy(deep=True)
    _apply_element_flags(el, payload)
    if timestamp is not None:
        el.last_updated = timestamp


def _apply_element_flags(el: CanvasElement, payload: ElementPayload) -> None:
    if payload.is_interactive is not None:
        el.is_interactive = payload.is_interactive
    if payload.is_visible is not None:
        el.is_visible = payload.is_visible
    if payload.agent_id:
        el.agent_id = payload.agent_id
    if payload.metadata is not None:
        el.metadata.update(payload.metadata)
    if payload.z_index is not None:
        el.z_index = payload.z_index


def agent_color(agent_id: str) -> str:
    digest = hashlib.md5(agent_id.encode("utf-8")).digest()
    return AGENT_COLORS[digest[0] % len(AGENT_COLORS)]
