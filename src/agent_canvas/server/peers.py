from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Peer:
    """
    One connected endpoint (agent or viewer; the relay does not distinguish).

    Outbound commands go through `pending` and are written by a dedicated
    writer task, so a slow socket never holds up the relay or other peers.
    """

    websocket: WebSocket
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    max_pending: int = 1024
    pending: deque[str] = field(default_factory=deque)
    dropped: int = 0
    closed: bool = False
    writer: asyncio.Task | None = None
    _wakeup: asyncio.Event = field(default_factory=asyncio.Event)

    def enqueue(self, data: str, *, drop_oldest: bool = False) -> bool:
        """
        Queue one serialized command. Never blocks.

        Returns False when the buffer is full and the overflow policy is
        disconnect; with `drop_oldest` the oldest queued command is discarded
        instead and True is returned.
        """
        if self.closed:
            return False
        if len(self.pending) >= self.max_pending:
            if not drop_oldest:
                return False
            self.pending.popleft()
            self.dropped += 1
            logger.warning("Peer %s outbound buffer full; dropped oldest command", self.id)
        self.pending.append(data)
        self._wakeup.set()
        return True

    def enqueue_all(self, items: list[str]) -> None:
        """Queue a batch regardless of the limit (used for the bootstrap snapshot)."""
        if self.closed:
            return
        self.pending.extend(items)
        self._wakeup.set()

    async def run_writer(self) -> None:
        """Write queued commands in order until the socket fails or the peer closes."""
        while not self.closed:
            await self._wakeup.wait()
            self._wakeup.clear()
            while self.pending and not self.closed:
                data = self.pending[0]
                try:
                    await self.websocket.send_text(data)
                except Exception as e:
                    logger.info("Write to peer %s failed: %s", self.id, e)
                    self.closed = True
                    return
                self.pending.popleft()

    def close(self) -> None:
        self.closed = True
        self._wakeup.set()


class PeerRegistry:
    """Connected peers, in connection order. Owned and locked by the Relay."""

    def __init__(self) -> None:
        self._peers: dict[str, Peer] = {}

    def __len__(self) -> int:
        return len(self._peers)

    def __iter__(self) -> Iterator[Peer]:
        return iter(list(self._peers.values()))

    def __contains__(self, peer: object) -> bool:
        return isinstance(peer, Peer) and self._peers.get(peer.id) is peer

    def add(self, peer: Peer) -> None:
        self._peers[peer.id] = peer

    def remove(self, peer: Peer) -> bool:
        if self._peers.get(peer.id) is peer:
            del self._peers[peer.id]
            return True
        return False

    def others(self, sender: Peer | None) -> list[Peer]:
        """Open peers except `sender` (None = everyone)."""
        return [p for p in self._peers.values() if p is not sender and not p.closed]
