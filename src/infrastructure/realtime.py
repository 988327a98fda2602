"""
In-memory real-time hub for channel-scoped WebSocket sessions.

Sessions join ``customer:<id>`` or ``driver:<id>`` (admins and observers
join no scoped channel); every session also receives ``broadcast``.
Delivery is fire-and-forget and at-most-once: an event for a channel with
no attached session is dropped, and clients reconcile by re-fetching on
(re)connect.  Across processes, ``RedisNotifier`` + the relay worker feed
this hub.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from src.domain.notifications import (
    BROADCAST,
    Notification,
    customer_channel,
    driver_channel,
)

logger = logging.getLogger(__name__)

# When a client is slow for too long, disconnect to protect server memory/CPU.
MAX_CONSECUTIVE_SEND_FAILURES = 3


@dataclass(eq=False)
class Connection:
    """One active WebSocket client."""

    websocket: WebSocket
    role: str  # "customer" | "driver" | "admin"
    user_id: int
    channels: frozenset[str]
    connected_at: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    failures: int = 0


class ConnectionHub:
    """Maps channel -> attached connections and fans notifications out."""

    def __init__(self, send_timeout: float = 3.0):
        self.send_timeout = send_timeout
        self._connections: dict[str, Connection] = {}
        self._channels: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    async def attach(self, conn: Connection) -> None:
        async with self._lock:
            self._connections[conn.id] = conn
            for channel in conn.channels:
                self._channels.setdefault(channel, set()).add(conn.id)
        logger.info("Session %s joined %s", conn.id, sorted(conn.channels) or [BROADCAST])

    async def detach(self, conn: Connection) -> None:
        async with self._lock:
            self._connections.pop(conn.id, None)
            for channel in conn.channels:
                members = self._channels.get(channel)
                if members is None:
                    continue
                members.discard(conn.id)
                if not members:
                    self._channels.pop(channel, None)

    async def subscribers(self, channel: str) -> list[Connection]:
        async with self._lock:
            if channel == BROADCAST:
                return list(self._connections.values())
            return [
                self._connections[cid]
                for cid in self._channels.get(channel, ())
                if cid in self._connections
            ]

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "connections": len(self._connections),
                "channels": {ch: len(ids) for ch, ids in self._channels.items()},
            }

    async def send(self, conn: Connection, message: dict[str, Any]) -> bool:
        """Send JSON with timeout.  Returns False if the client looks dead."""
        if conn.websocket.client_state != WebSocketState.CONNECTED:
            return False
        try:
            await asyncio.wait_for(
                conn.websocket.send_text(json.dumps(message, default=str)),
                timeout=self.send_timeout,
            )
            conn.failures = 0
            return True
        except (asyncio.TimeoutError, RuntimeError, ConnectionError):
            conn.failures += 1
            return False

    async def deliver(self, notification: Notification) -> int:
        """Deliver to everyone currently on the channel; returns the count."""
        conns = await self.subscribers(notification.channel)
        if not conns:
            logger.debug(
                "No subscriber on %s; dropping %s", notification.channel, notification.event
            )
            return 0

        message = {"type": notification.event, "payload": notification.payload}
        delivered = 0
        for conn in conns:
            if await self.send(conn, message):
                delivered += 1
            elif conn.failures >= MAX_CONSECUTIVE_SEND_FAILURES:
                logger.warning("Dropping unresponsive session %s", conn.id)
                await self.detach(conn)
        return delivered

    async def _deliver_all(self, notifications: list[Notification]) -> None:
        for note in notifications:
            try:
                await self.deliver(note)
            except Exception:
                logger.exception("Failed to deliver %s to %s", note.event, note.channel)

    async def publish(self, notifications: Iterable[Notification]) -> None:
        """Schedule delivery without waiting for it."""
        notes = list(notifications)
        if not notes:
            return
        task = asyncio.create_task(self._deliver_all(notes))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for scheduled deliveries (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def channels_for(role: str, user_id: int) -> frozenset[str]:
    if role == "customer":
        return frozenset({customer_channel(user_id)})
    if role == "driver":
        return frozenset({driver_channel(user_id)})
    return frozenset()
