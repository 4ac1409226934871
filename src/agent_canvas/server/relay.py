from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

from agent_canvas.canvas.store import ElementStore
from agent_canvas.protocol.messages import Command, MalformedCommandError, parse_command

from .config import Settings, get_settings
from .peers import Peer, PeerRegistry

logger = logging.getLogger(__name__)

# "Try again later": used when a peer is dropped for falling behind.
CLOSE_TRY_AGAIN_LATER = 1013


class Relay:
    """
    Single broadcast point: owns the element store and the peer registry.

    One lock serializes store mutation, registry changes and broadcast
    enqueueing, so every peer receives commands in the order they were
    applied.
    """

    def __init__(self, settings: Settings | None = None, store: ElementStore | None = None):
        self.settings = settings or get_settings()
        self.store = store or ElementStore()
        self.peers = PeerRegistry()
        self._lock = asyncio.Lock()
        # socket closes run in the background so no caller waits on a peer's close handshake
        self._closing: set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> Peer:
        """Accept a socket, register it and queue the bootstrap snapshot."""
        await websocket.accept()
        peer = Peer(websocket=websocket, max_pending=self.settings.peer_max_pending)
        async with self._lock:
            self.peers.add(peer)
            if self.settings.bootstrap_snapshot:
                peer.enqueue_all([c.dumps() for c in self.store.bootstrap_commands()])
        peer.writer = asyncio.create_task(self._write(peer))
        host = getattr(websocket.client, "host", None)
        logger.info("Peer %s connected from %s (%d connected)", peer.id, host, len(self.peers))
        return peer

    async def disconnect(self, peer: Peer, *, close: bool = False, code: int = 1000) -> None:
        """Unregister a peer. Safe to call more than once."""
        async with self._lock:
            removed = self._unregister(peer)
        if close:
            self._close_later(peer, code)
        if removed:
            logger.info("Peer %s disconnected (%d connected)", peer.id, len(self.peers))

    async def handle_message(self, peer: Peer | None, raw: str) -> Command | None:
        """
        Validate, apply and forward one inbound message.

        Malformed input is logged and dropped; the sender stays connected.
        The original text is forwarded untouched to every other peer.
        """
        try:
            command = parse_command(raw)
        except MalformedCommandError as e:
            logger.warning("Dropping malformed command from %s: %s", peer.id if peer else "relay", e)
            return None

        if self.settings.debug_log_msgs:
            logger.info(
                "[relay] in %s %s from=%s",
                command.command_type,
                command.element_id,
                peer.id if peer else "relay",
            )

        overflowed: list[Peer] = []
        async with self._lock:
            event = self.store.apply(command)
            for other in self.peers.others(peer):
                if not other.enqueue(raw, drop_oldest=self.settings.peer_overflow_policy == "drop_oldest"):
                    self._unregister(other)
                    overflowed.append(other)

        if event is None:
            logger.debug("%s %s changed nothing", command.command_type, command.element_id)
        for slow in overflowed:
            logger.warning("Peer %s fell too far behind; disconnected (%d connected)", slow.id, len(self.peers))
            self._close_later(slow, CLOSE_TRY_AGAIN_LATER)
        return command

    async def publish(self, command: Command) -> None:
        """Apply a relay-originated command and send it to every peer."""
        await self.handle_message(None, command.dumps())

    async def serve(self, websocket: WebSocket) -> None:
        """Run one peer connection to completion."""
        peer = await self.connect(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None and message.get("bytes") is not None:
                    try:
                        raw = message["bytes"].decode("utf-8")
                    except UnicodeDecodeError:
                        logger.warning("Dropping non-UTF-8 binary frame from %s", peer.id)
                        continue
                if raw is None:
                    continue
                await self.handle_message(peer, raw)
        except WebSocketDisconnect:
            pass
        except RuntimeError as e:
            # receive after the socket already closed
            logger.info("Peer %s connection ended: %s", peer.id, e)
        finally:
            await self.disconnect(peer)

    async def _write(self, peer: Peer) -> None:
        await peer.run_writer()
        if peer.closed and peer in self.peers:
            await self.disconnect(peer, close=True)

    def _unregister(self, peer: Peer) -> bool:
        # caller holds self._lock
        removed = self.peers.remove(peer)
        peer.close()
        if peer.writer is not None and peer.writer is not asyncio.current_task():
            peer.writer.cancel()
        return removed

    def _close_later(self, peer: Peer, code: int) -> None:
        task = asyncio.create_task(self._close_socket(peer, code))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_socket(self, peer: Peer, code: int) -> None:
        try:
            await peer.websocket.close(code=code)
        except Exception as e:
            logger.debug("Closing peer %s socket failed: %s", peer.id, e)
