"""
WebSocket endpoint for live booking events.

``/ws?role=<customer|driver|admin>&user_id=<id>``

Server messages are ``{"type": <event>, "payload": {...}}`` plus
``connected``, ``ping`` and ``error`` frames.  The only client message
with an effect is ``driver_location_update`` (drivers only), which is
relayed to the booking's customer.  Identity failures close with 1008.

The socket holds no database session; the identity lookup and each
location update open their own short one.
"""

import asyncio
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.websockets import WebSocketState

from src.api.dependencies import get_notifier, get_session_factory
from src.config import settings
from src.domain.enums import UserRole
from src.domain.errors import DispatchError
from src.infrastructure.event_bus import Notifier
from src.infrastructure.realtime import Connection, ConnectionHub, channels_for
from src.infrastructure.repositories import UserRepository
from src.services.dispatch import DispatchService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

POLICY_VIOLATION = 1008


async def _heartbeat(hub: ConnectionHub, conn: Connection, stop: asyncio.Event) -> None:
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=settings.ws_ping_interval_seconds)
            return
        except asyncio.TimeoutError:
            pass
        if not await hub.send(conn, {"type": "ping", "ts": time.time()}):
            stop.set()


async def _reject(websocket: WebSocket, reason: str) -> None:
    await websocket.send_json({"type": "error", "message": reason})
    await websocket.close(code=POLICY_VIOLATION, reason=reason)


async def _handle_message(
    websocket: WebSocket,
    conn: Connection,
    sessions: async_sessionmaker,
    notifier: Notifier,
    message: Any,
) -> None:
    if not isinstance(message, dict):
        await websocket.send_json({"type": "error", "message": "Expected a JSON object."})
        return
    mtype = message.get("type")
    if mtype == "pong":
        return
    if mtype != "driver_location_update":
        await websocket.send_json({"type": "ack", "received_type": mtype})
        return
    if conn.role != "driver":
        await websocket.send_json({"type": "error", "message": "Only drivers send locations."})
        return

    payload = message.get("payload")
    if not isinstance(payload, dict):
        payload = {k: v for k, v in message.items() if k != "type"}
    try:
        async with sessions() as db:
            await DispatchService(db, notifier).relay_driver_location(conn.user_id, payload)
    except DispatchError as exc:
        await websocket.send_json({"type": "error", **exc.to_dict()})


@router.websocket("/ws")
async def events(
    websocket: WebSocket,
    role: str = Query(...),
    user_id: int = Query(...),
    sessions: async_sessionmaker = Depends(get_session_factory),
    notifier: Notifier = Depends(get_notifier),
) -> None:
    """Join ``<role>:<user_id>`` (plus broadcast) and stream events until disconnect."""
    await websocket.accept()

    try:
        requested = UserRole(role.strip().upper())
    except ValueError:
        await _reject(websocket, f"Unknown role '{role}'.")
        return
    async with sessions() as db:
        user = await UserRepository(db).get_by_id(user_id)
    if user is None or UserRole(user.role) != requested:
        await _reject(websocket, "Unknown user or role mismatch.")
        return
    role = requested.value.lower()
    if UserRole(user.role) == UserRole.DRIVER and not user.approved:
        await _reject(websocket, "Driver is not approved.")
        return

    hub: ConnectionHub = websocket.app.state.hub
    conn = Connection(
        websocket=websocket,
        role=role,
        user_id=user.id,
        channels=channels_for(role, user.id),
    )
    await hub.attach(conn)
    await hub.send(
        conn,
        {
            "type": "connected",
            "role": role,
            "userId": user.id,
            "channels": sorted(conn.channels),
        },
    )

    stop = asyncio.Event()
    heartbeat = asyncio.create_task(_heartbeat(hub, conn, stop))
    try:
        while websocket.client_state == WebSocketState.CONNECTED and not stop.is_set():
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                break
            except ValueError:
                await websocket.send_json(
                    {"type": "error", "message": "Invalid message format; expected JSON."}
                )
                continue
            await _handle_message(websocket, conn, sessions, notifier, message)
    finally:
        stop.set()
        heartbeat.cancel()
        await hub.detach(conn)
        logger.info("Session %s (%s:%s) closed", conn.id, role, user.id)
