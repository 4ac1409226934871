from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from agent_canvas.protocol.constants import BOOTSTRAP_SIZE_KEY
from agent_canvas.protocol.factory import now_iso
from agent_canvas.protocol.messages import (
    AddElement,
    ClearCanvas,
    Command,
    ExecuteScript,
    RemoveElement,
    Set3DFocus,
    UpdateElement,
)

from .elements import Agent, CanvasElement, agent_color, element_from_payload, merge_payload

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"
    CLEAR = "clear"
    FOCUS = "focus"


@dataclass(frozen=True)
class StoreEvent:
    """What an applied command changed. `element` is a copy taken at apply time."""

    kind: ChangeKind
    element_id: str
    command: Command
    element: Optional[CanvasElement] = None


class ElementStore:
    """
    Authoritative (relay) or replica (client) element state.

    All mutation goes through `apply`. `apply`, `snapshot` and
    `bootstrap_commands` hold the same lock, so readers never observe a
    half-applied command.
    """

    def __init__(self) -> None:
        self._elements: dict[str, CanvasElement] = {}
        # element id -> sequence number of the last command that touched it
        self._touched: dict[str, int] = {}
        self._seq = 0
        self._focus: Optional[Set3DFocus] = None
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._elements)

    def __contains__(self, element_id: object) -> bool:
        with self._lock:
            return element_id in self._elements

    @property
    def focused_element_id(self) -> Optional[str]:
        with self._lock:
            return self._focus.element_id if self._focus is not None else None

    def get(self, element_id: str) -> Optional[CanvasElement]:
        with self._lock:
            el = self._elements.get(element_id)
            return copy.deepcopy(el) if el is not None else None

    def apply(self, command: Command) -> Optional[StoreEvent]:
        """Apply one command. Returns None when nothing changed (orphan or script)."""
        with self._lock:
            self._seq += 1
            if isinstance(command, AddElement):
                return self._add(command)
            if isinstance(command, UpdateElement):
                return self._update(command)
            if isinstance(command, RemoveElement):
                return self._remove(command)
            if isinstance(command, ClearCanvas):
                return self._clear(command)
            if isinstance(command, Set3DFocus):
                return self._set_focus(command)
            if isinstance(command, ExecuteScript):
                # opaque renderer effect; nothing to record
                return None
            raise TypeError(f"not a command: {command!r}")

    def _add(self, cmd: AddElement) -> StoreEvent:
        el = element_from_payload(cmd.element_id, cmd.payload, cmd.timestamp)
        if self._elements.pop(cmd.element_id, None) is not None:
            logger.debug("addElement overwrote existing element %s", cmd.element_id)
        self._elements[cmd.element_id] = el
        self._touched[cmd.element_id] = self._seq
        return StoreEvent(ChangeKind.ADD, cmd.element_id, cmd, copy.deepcopy(el))

    def _update(self, cmd: UpdateElement) -> Optional[StoreEvent]:
        el = self._elements.get(cmd.element_id)
        if el is None:
            logger.debug("updateElement for unknown element %s ignored", cmd.element_id)
            return None
        merge_payload(el, cmd.payload, cmd.timestamp)
        self._touched[cmd.element_id] = self._seq
        return StoreEvent(ChangeKind.UPDATE, cmd.element_id, cmd, copy.deepcopy(el))

    def _remove(self, cmd: RemoveElement) -> Optional[StoreEvent]:
        el = self._elements.pop(cmd.element_id, None)
        if el is None:
            logger.debug("removeElement for unknown element %s ignored", cmd.element_id)
            return None
        self._touched.pop(cmd.element_id, None)
        if self._focus is not None and self._focus.element_id == cmd.element_id:
            self._focus = None
        return StoreEvent(ChangeKind.REMOVE, cmd.element_id, cmd, el)

    def _clear(self, cmd: ClearCanvas) -> StoreEvent:
        self._elements.clear()
        self._touched.clear()
        self._focus = None
        return StoreEvent(ChangeKind.CLEAR, cmd.element_id, cmd)

    def _set_focus(self, cmd: Set3DFocus) -> Optional[StoreEvent]:
        el = self._elements.get(cmd.element_id)
        if el is None:
            logger.debug("set3DFocus for unknown element %s ignored", cmd.element_id)
            return None
        self._focus = cmd
        return StoreEvent(ChangeKind.FOCUS, cmd.element_id, cmd, copy.deepcopy(el))

    def snapshot(self) -> list[CanvasElement]:
        """All elements, in insertion order."""
        with self._lock:
            return copy.deepcopy(list(self._elements.values()))

    def bootstrap_commands(self) -> list[Command]:
        """
        Commands that rebuild the current state on any replica:
        a clearCanvas announcing how many commands follow, one addElement per
        element, then the current focus if any.
        """
        with self._lock:
            rebuild: list[Command] = [
                AddElement.model_validate(
                    {
                        "commandType": "addElement",
                        "elementId": el.id,
                        "timestamp": el.last_updated,
                        "payload": el.to_payload(),
                    }
                )
                for el in self._elements.values()
            ]
            if self._focus is not None:
                rebuild.append(self._focus)
            clear = ClearCanvas.model_validate(
                {
                    "commandType": "clearCanvas",
                    "elementId": f"bootstrap-{uuid.uuid4().hex[:10]}",
                    "timestamp": now_iso(),
                    "payload": {BOOTSTRAP_SIZE_KEY: len(rebuild)},
                }
            )
            return [clear, *rebuild]

    def agents(self) -> list[Agent]:
        """Derived agent list, ordered by first owned element."""
        with self._lock:
            by_id: dict[str, Agent] = {}
            latest: dict[str, int] = {}
            for el in self._elements.values():
                agent = by_id.get(el.agent_id)
                if agent is None:
                    agent = by_id[el.agent_id] = Agent(
                        id=el.agent_id, name=el.agent_id, color=agent_color(el.agent_id)
                    )
                agent.elements.append(el.id)
                seq = self._touched.get(el.id, 0)
                if seq >= latest.get(el.agent_id, -1):
                    latest[el.agent_id] = seq
                    agent.last_seen = el.last_updated
            return list(by_id.values())
