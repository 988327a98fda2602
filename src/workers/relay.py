"""
Background Event Relay
======================

Only runs with ``EVENT_BACKEND=redis``.

Every API process publishes notifications to Redis (``dispatch:<channel>``)
and runs one relay loop that pattern-subscribes to ``dispatch:*`` and
hands each envelope to the process-local ``ConnectionHub``.  Pub/sub keeps
the at-most-once contract: a process that is not subscribed when an event
is published never sees it.
"""

from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from src.config import settings
from src.infrastructure.event_bus import decode
from src.infrastructure.realtime import ConnectionHub

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None

RECONNECT_DELAY_SECONDS = 2.0


# ── Public API ────────────────────────────────────────────────────────


async def start_relay(client: aioredis.Redis, hub: ConnectionHub) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(client, hub))
    logger.info("Event relay started (pattern=%s:*)", settings.redis_channel_prefix)


async def stop_relay() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Event relay stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(client: aioredis.Redis, hub: ConnectionHub) -> None:
    """Subscribe and forward; resubscribe after connection errors."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await relay_messages(client, hub, _stop_event)
        except aioredis.RedisError:
            logger.exception("Relay lost its Redis subscription; retrying")
        try:
            await asyncio.wait_for(_stop_event.wait(), timeout=RECONNECT_DELAY_SECONDS)
            break
        except asyncio.TimeoutError:
            pass  # resubscribe


async def relay_messages(
    client: aioredis.Redis, hub: ConnectionHub, stop: asyncio.Event
) -> int:
    """Forward messages until *stop* is set.  Returns the number relayed."""
    relayed = 0
    pubsub = client.pubsub()
    await pubsub.psubscribe(f"{settings.redis_channel_prefix}:*")
    try:
        while not stop.is_set():
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None:
                continue
            note = decode(message.get("data"))
            if note is None:
                continue
            await hub.deliver(note)
            relayed += 1
    finally:
        await pubsub.punsubscribe()
        await pubsub.aclose()
    return relayed
