"""
Command builders for producers.

Each builder returns a validated command with a fresh prefixed id and an
ISO-8601 timestamp. Defaults (positions, sizes, styles, animations) are the
ones agents have always used for a freshly placed element.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .constants import (
    C_ADD_ELEMENT,
    C_CLEAR_CANVAS,
    C_EXECUTE_SCRIPT,
    C_REMOVE_ELEMENT,
    C_SET_3D_FOCUS,
    C_UPDATE_ELEMENT,
    E_3D_MODEL,
    E_DRAWING,
    E_IMAGE,
    E_TEXT,
    E_VIDEO,
)
from .messages import (
    AddElement,
    ClearCanvas,
    ExecuteScript,
    RemoveElement,
    Set3DFocus,
    UpdateElement,
)

DEFAULT_TEXT_STYLES: dict[str, Any] = {
    "fontSize": "24px",
    "color": "#333333",
    "fontFamily": "Arial, sans-serif",
    "fontWeight": "normal",
    "textAlign": "left",
    "width": "400px",
}


def now_iso() -> str:
    """UTC timestamp in the `2024-01-01T12:00:00.000Z` form producers send."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_element_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4()}"


def _envelope(command_type: str, element_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "commandType": command_type,
        "elementId": element_id,
        "timestamp": now_iso(),
        "payload": payload,
    }


def add_element(element_type: str, element_id: Optional[str] = None, **fields: Any) -> AddElement:
    """Generic add; `fields` are wire-named payload fields (e.g. content, url, position)."""
    eid = element_id or new_element_id(element_type.lower())
    payload = {"elementType": element_type, **fields}
    return AddElement.model_validate(_envelope(C_ADD_ELEMENT, eid, payload))


def add_text(
    content: str,
    position: Optional[dict[str, float]] = None,
    styles: Optional[dict[str, Any]] = None,
    element_id: Optional[str] = None,
) -> AddElement:
    return add_element(
        E_TEXT,
        element_id=element_id or new_element_id("text"),
        content=content,
        position=position or {"x": 50, "y": 50},
        styles={**DEFAULT_TEXT_STYLES, **(styles or {})},
        animation={"type": "fadeIn", "duration": 0.5},
    )


def add_image(
    url: str,
    position: Optional[dict[str, float]] = None,
    size: Optional[dict[str, float]] = None,
    element_id: Optional[str] = None,
) -> AddElement:
    return add_element(
        E_IMAGE,
        element_id=element_id or new_element_id("image"),
        url=url,
        position=position or {"x": 200, "y": 150},
        size=size or {"width": 400, "height": 300},
        opacity=1.0,
        animation={"type": "slideInFromRight", "duration": 0.7},
    )


def add_video(
    url: str,
    position: Optional[dict[str, float]] = None,
    size: Optional[dict[str, float]] = None,
    element_id: Optional[str] = None,
    **options: Any,
) -> AddElement:
    fields: dict[str, Any] = {"autoplay": False, "loop": False, "controls": True, **options}
    return add_element(
        E_VIDEO,
        element_id=element_id or new_element_id("video"),
        url=url,
        position=position or {"x": 100, "y": 350},
        size=size or {"width": 640, "height": 360},
        **fields,
    )


def add_3d_model(
    model_url: str,
    position: Optional[dict[str, float]] = None,
    element_id: Optional[str] = None,
    **options: Any,
) -> AddElement:
    fields: dict[str, Any] = {
        "rotation": {"x": 0, "y": 0, "z": 0},
        "scale": {"x": 1, "y": 1, "z": 1},
        "isInteractive": True,
        **options,
    }
    return add_element(
        E_3D_MODEL,
        element_id=element_id or new_element_id("3dmodel"),
        modelUrl=model_url,
        position=position or {"x": 0, "y": 0, "z": 0},
        **fields,
    )


def update_element(element_id: str, element_type: Optional[str] = None, **updates: Any) -> UpdateElement:
    payload: dict[str, Any] = dict(updates)
    if element_type is not None:
        payload["elementType"] = element_type
    return UpdateElement.model_validate(_envelope(C_UPDATE_ELEMENT, element_id, payload))


def remove_element(element_id: str) -> RemoveElement:
    return RemoveElement.model_validate(_envelope(C_REMOVE_ELEMENT, element_id, {}))


def execute_script(
    script_code: str,
    element_type: str = E_DRAWING,
    is_persistent: bool = False,
    element_id: Optional[str] = None,
) -> ExecuteScript:
    payload = {"elementType": element_type, "scriptCode": script_code, "isPersistent": is_persistent}
    return ExecuteScript.model_validate(
        _envelope(C_EXECUTE_SCRIPT, element_id or new_element_id("script"), payload)
    )


def clear_canvas(element_id: Optional[str] = None, **extra: Any) -> ClearCanvas:
    # elementId is only for traceability; the store ignores it.
    eid = element_id or new_element_id("canvas-clear")
    return ClearCanvas.model_validate(_envelope(C_CLEAR_CANVAS, eid, dict(extra)))


def set_3d_focus(element_id: str, focus_type: str = "cameraLookAt", **options: Any) -> Set3DFocus:
    payload: dict[str, Any] = {
        "focusType": focus_type,
        "targetPosition": {"x": 0, "y": 0, "z": 0},
        "animationDuration": 1.0,
        **options,
    }
    return Set3DFocus.model_validate(_envelope(C_SET_3D_FOCUS, element_id, payload))
