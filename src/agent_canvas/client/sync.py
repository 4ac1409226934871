"""
Viewer-side synchronization with the relay.

`CanvasSyncClient` owns one websocket to the relay, keeps a local replica
of the canvas by applying every received command with the same rules as the
relay's store, and queues outbound commands while the link is down.

Renderers subscribe to:
- `on_change`            StoreEvent per applied add/update/remove/clear/focus
- `on_script`            ScriptEvent per executeScript (raw code, never run here)
- `on_connection_change` bool, on every connected/disconnected edge
- `on_state_change`      ConnectionState, including FAILED after giving up
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import websockets
from websockets.exceptions import WebSocketException

from agent_canvas.canvas.elements import Agent, CanvasElement
from agent_canvas.canvas.store import ElementStore, StoreEvent
from agent_canvas.protocol import factory
from agent_canvas.protocol.messages import (
    Command,
    ExecuteScript,
    MalformedCommandError,
    bootstrap_size,
    parse_command,
)

from .config import ClientSettings, get_client_settings

logger = logging.getLogger(__name__)

MAX_MESSAGE_BYTES = 2**22


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    # gave up after max_reconnect_attempts; needs reconnect()
    FAILED = "failed"


@dataclass(frozen=True)
class ScriptEvent:
    element_id: str
    element_type: str
    script_code: str
    is_persistent: bool
    command: ExecuteScript


class CanvasSyncClient:
    def __init__(
        self,
        url: Optional[str] = None,
        *,
        reconnect_base_delay_s: Optional[float] = None,
        max_reconnect_attempts: Optional[int] = None,
        open_timeout_s: Optional[float] = None,
        bootstrap_wait_s: Optional[float] = None,
        settings: Optional[ClientSettings] = None,
    ):
        settings = settings or get_client_settings()
        self.url = url or settings.url
        self.reconnect_base_delay_s = (
            settings.reconnect_base_delay_s if reconnect_base_delay_s is None else reconnect_base_delay_s
        )
        self.max_reconnect_attempts = (
            settings.max_reconnect_attempts if max_reconnect_attempts is None else max_reconnect_attempts
        )
        self.open_timeout_s = settings.open_timeout_s if open_timeout_s is None else open_timeout_s
        self.bootstrap_wait_s = settings.bootstrap_wait_s if bootstrap_wait_s is None else bootstrap_wait_s
        self.debug_log_msgs = settings.debug_log_msgs

        self.replica = ElementStore()

        # (command, applied_locally) in send order; popped only after a successful write
        self._outbox: deque[tuple[Command, bool]] = deque()
        self._outbox_ready = asyncio.Event()

        self._state = ConnectionState.DISCONNECTED
        self._connected = asyncio.Event()
        self._attempts = 0
        self._closed = False
        self._task: Optional[asyncio.Task] = None
        self._retry_now = asyncio.Event()

        # Commands applied locally and sent on the current connection before
        # the relay's bootstrap finished; re-applied after it (the bootstrap
        # clear wipes them, and the relay never echoes them back).
        self._replay: Optional[list[Command]] = None
        self._bootstrap_remaining: Optional[int] = None
        self._replay_expiry: Optional[asyncio.TimerHandle] = None

        self._change_listeners: list[Callable[[StoreEvent], Any]] = []
        self._script_listeners: list[Callable[[ScriptEvent], Any]] = []
        self._connection_listeners: list[Callable[[bool], Any]] = []
        self._state_listeners: list[Callable[[ConnectionState], Any]] = []

    async def __aenter__(self) -> CanvasSyncClient:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # lifecycle

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        """Begin connecting in the background. Needs a running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._closed = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def reconnect(self) -> None:
        """
        Manual trigger: reset the attempt counter and connect now.

        Does nothing after `disconnect()`; use `start()` to open a closed client again.
        """
        if self._closed:
            logger.info("reconnect() ignored: client was disconnected")
            return
        self._attempts = 0
        if self._task is None or self._task.done():
            self.start()
        else:
            self._retry_now.set()

    async def disconnect(self) -> None:
        """Close the connection for good; no further reconnects."""
        self._closed = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._mark_disconnected()
        self._set_state(ConnectionState.DISCONNECTED)

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run(self) -> None:
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            try:
                async with websockets.connect(
                    self.url, open_timeout=self.open_timeout_s, max_size=MAX_MESSAGE_BYTES
                ) as ws:
                    await self._on_open(ws)
                    await self._pump(ws)
                logger.info("Canvas connection closed by relay")
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning("Canvas connection to %s failed: %s", self.url, e)
            finally:
                self._cancel_replay_expiry()
                self._replay = None
                self._mark_disconnected()

            if self._closed:
                return
            if self._attempts >= self.max_reconnect_attempts:
                logger.error(
                    "Max reconnection attempts (%d) reached; call reconnect() to resume",
                    self.max_reconnect_attempts,
                )
                self._set_state(ConnectionState.FAILED)
                return
            self._attempts += 1
            delay = self.reconnect_base_delay_s * self._attempts
            logger.info(
                "Attempting to reconnect in %.2fs (%d/%d)",
                delay,
                self._attempts,
                self.max_reconnect_attempts,
            )
            self._set_state(ConnectionState.RECONNECTING)
            self._retry_now.clear()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._retry_now.wait(), timeout=delay)

    async def _on_open(self, ws: Any) -> None:
        self._attempts = 0
        self._replay = []
        self._bootstrap_remaining = None
        self._cancel_replay_expiry()
        self._replay_expiry = asyncio.get_running_loop().call_later(
            self.bootstrap_wait_s, self._expire_replay
        )
        if self._outbox:
            logger.info("Flushing %d queued command(s)", len(self._outbox))
        await self._flush(ws)
        self._connected.set()
        self._set_state(ConnectionState.CONNECTED)
        logger.info("Canvas connected to %s", self.url)
        self._emit(self._connection_listeners, True)

    async def _pump(self, ws: Any) -> None:
        reader = asyncio.create_task(self._read_loop(ws))
        writer = asyncio.create_task(self._write_loop(ws))
        try:
            done, _ = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for t in (reader, writer):
                t.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)
        for t in done:
            if not t.cancelled() and t.exception() is not None:
                raise t.exception()

    async def _read_loop(self, ws: Any) -> None:
        async for raw in ws:
            self._handle_raw(raw)

    async def _write_loop(self, ws: Any) -> None:
        while True:
            await self._outbox_ready.wait()
            self._outbox_ready.clear()
            await self._flush(ws)

    async def _flush(self, ws: Any) -> None:
        while self._outbox:
            command, applied = self._outbox[0]
            await ws.send(command.dumps())
            self._outbox.popleft()
            if applied and self._replay is not None:
                self._replay.append(command)

    def _mark_disconnected(self) -> None:
        if self._connected.is_set():
            self._connected.clear()
            self._emit(self._connection_listeners, False)

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            self._state = state
            self._emit(self._state_listeners, state)

    # ------------------------------------------------------------------
    # inbound

    def _handle_raw(self, raw: str | bytes) -> None:
        try:
            command = parse_command(raw)
        except MalformedCommandError as e:
            logger.warning("Ignoring malformed command from relay: %s", e)
            return
        if self.debug_log_msgs:
            logger.info("[client] in %s %s", command.command_type, command.element_id)
        self._receive(command)

    def _receive(self, command: Command) -> None:
        if self._replay is not None and self._bootstrap_remaining is None:
            size = bootstrap_size(command)
            if size is None:
                # relay sent no snapshot, so nothing local was wiped
                self._replay = None
            else:
                self._bootstrap_remaining = size
                self._dispatch(command)
                self._finish_bootstrap_if_done()
                return

        self._dispatch(command)
        if self._bootstrap_remaining is not None:
            self._bootstrap_remaining -= 1
            self._finish_bootstrap_if_done()

    def _expire_replay(self) -> None:
        self._replay_expiry = None
        if self._bootstrap_remaining is None and self._replay is not None:
            # no bootstrap started in time; stop tracking, a later bootstrap acts as a plain clear
            logger.debug(
                "No bootstrap within %.1fs; dropped %d replay entries", self.bootstrap_wait_s, len(self._replay)
            )
            self._replay = None

    def _cancel_replay_expiry(self) -> None:
        if self._replay_expiry is not None:
            self._replay_expiry.cancel()
            self._replay_expiry = None

    def _finish_bootstrap_if_done(self) -> None:
        if self._bootstrap_remaining is None or self._bootstrap_remaining > 0:
            return
        replay, self._replay = self._replay or [], None
        self._bootstrap_remaining = None
        for command in replay:
            self._apply(command)
        logger.debug("Bootstrap complete; re-applied %d local command(s)", len(replay))

    def _dispatch(self, command: Command) -> None:
        if isinstance(command, ExecuteScript):
            self._emit(
                self._script_listeners,
                ScriptEvent(
                    element_id=command.element_id,
                    element_type=command.payload.element_type,
                    script_code=command.payload.script_code,
                    is_persistent=command.payload.is_persistent,
                    command=command,
                ),
            )
            return
        self._apply(command)

    def _apply(self, command: Command) -> None:
        event = self.replica.apply(command)
        if event is not None:
            self._emit(self._change_listeners, event)

    # ------------------------------------------------------------------
    # outbound

    def send(self, command: Command, *, apply_locally: bool = True) -> None:
        """
        Transmit a command, or queue it until the next connection.

        Never blocks. With `apply_locally` the command's store effect is
        applied to the replica right away, since the relay does not send a
        peer's own commands back to it.
        """
        applied = apply_locally and not isinstance(command, ExecuteScript)
        self._outbox.append((command, applied))
        self._outbox_ready.set()
        if not self.is_connected:
            logger.debug("Queued %s %s (not connected)", command.command_type, command.element_id)
        if applied:
            self._apply(command)

    def add_element(self, element_type: str, element_id: Optional[str] = None, **fields: Any) -> str:
        command = factory.add_element(element_type, element_id=element_id, **fields)
        self.send(command)
        return command.element_id

    def update_element(self, element_id: str, element_type: Optional[str] = None, **updates: Any) -> None:
        self.send(factory.update_element(element_id, element_type, **updates))

    def remove_element(self, element_id: str) -> None:
        self.send(factory.remove_element(element_id))

    def focus_element(self, element_id: str, focus_type: str = "cameraLookAt", **options: Any) -> None:
        self.send(factory.set_3d_focus(element_id, focus_type, **options))

    def execute_script(self, script_code: str, element_type: str = "drawing", is_persistent: bool = False) -> None:
        self.send(factory.execute_script(script_code, element_type=element_type, is_persistent=is_persistent))

    def clear_canvas(self) -> None:
        self.send(factory.clear_canvas())

    # ------------------------------------------------------------------
    # read side

    @property
    def elements(self) -> list[CanvasElement]:
        return self.replica.snapshot()

    def get(self, element_id: str) -> Optional[CanvasElement]:
        return self.replica.get(element_id)

    @property
    def focused_element_id(self) -> Optional[str]:
        return self.replica.focused_element_id

    @property
    def agents(self) -> list[Agent]:
        return self.replica.agents()

    @property
    def pending(self) -> int:
        """Commands not yet written to the relay."""
        return len(self._outbox)

    # ------------------------------------------------------------------
    # listeners

    def on_change(self, callback: Callable[[StoreEvent], Any]) -> Callable[[], None]:
        return self._subscribe(self._change_listeners, callback)

    def on_script(self, callback: Callable[[ScriptEvent], Any]) -> Callable[[], None]:
        return self._subscribe(self._script_listeners, callback)

    def on_connection_change(self, callback: Callable[[bool], Any]) -> Callable[[], None]:
        return self._subscribe(self._connection_listeners, callback)

    def on_state_change(self, callback: Callable[[ConnectionState], Any]) -> Callable[[], None]:
        return self._subscribe(self._state_listeners, callback)

    @staticmethod
    def _subscribe(listeners: list, callback: Callable) -> Callable[[], None]:
        listeners.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                listeners.remove(callback)

        return unsubscribe

    @staticmethod
    def _emit(listeners: list, *args: Any) -> None:
        for callback in list(listeners):
            try:
                callback(*args)
            except Exception:
                logger.exception("Canvas listener %r failed", callback)
