"""
Notifier implementations.

* ``Notifier``       -- what the dispatch service depends on.
* ``ConnectionHub``  -- single-process delivery (see :mod:`realtime`).
* ``RedisNotifier``  -- publishes to Redis pub/sub so every API process
  can deliver to its own sessions; ``src.workers.relay`` subscribes and
  feeds the local hub.

Publishing is best-effort and off the request path: deliveries run as
background tasks, and failures are logged, never raised into the
request that caused them.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable, Optional, Protocol

import redis.asyncio as aioredis

from src.domain.notifications import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def publish(self, notifications: Iterable[Notification]) -> None: ...


def encode(note: Notification) -> str:
    return json.dumps(
        {"channel": note.channel, "event": note.event, "payload": note.payload},
        default=str,
    )


def decode(raw: Any) -> Optional[Notification]:
    if isinstance(raw, bytes):
        raw = raw.decode()
    try:
        data = json.loads(raw)
        return Notification(data["channel"], data["event"], data.get("payload") or {})
    except (TypeError, ValueError, KeyError):
        logger.warning("Discarding malformed event envelope: %r", raw)
        return None


class RedisNotifier:
    def __init__(self, client: aioredis.Redis, prefix: str = "dispatch"):
        self.redis = client
        self.prefix = prefix
        self._pending: set[asyncio.Task] = set()

    def redis_channel(self, channel: str) -> str:
        return f"{self.prefix}:{channel}"

    async def publish(self, notifications: Iterable[Notification]) -> None:
        """Schedule the Redis round-trips without waiting for them."""
        notes = list(notifications)
        if not notes:
            return
        task = asyncio.create_task(self._publish_all(notes))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish_all(self, notes: list[Notification]) -> None:
        for note in notes:
            try:
                await self.redis.publish(self.redis_channel(note.channel), encode(note))
            except (aioredis.RedisError, OSError):
                logger.warning(
                    "Redis publish failed for %s on %s", note.event, note.channel,
                    exc_info=True,
                )

    async def drain(self) -> None:
        """Wait for scheduled publishes (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
