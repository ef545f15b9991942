"""WebSocket route for the realtime Event Hub.

- Handshake registers the connection (no rooms yet); the optional
  ``userId`` query parameter joins the user room right away.
- Client messages: join-blogs-room, join-user-room, user-typing,
  user-stopped-typing, ping, pong.
- Heartbeat: server sends JSON ping on idle; closes after configurable
  missed pongs.

Identity is whatever the client asserts; there is no token check.
"""
from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.dependencies import get_realtime_hub
from application.ports.realtime import ClientMessage, Envelope
from application.services.realtime_hub import InvalidTypingPayload, RealtimeHub
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


router = APIRouter(prefix="/ws", tags=["WebSocket"])


def handle_client_message(hub: RealtimeHub, connection_id: str, msg: Any) -> None:
    """Dispatch one decoded client message; replies go through the send queue."""
    if not isinstance(msg, dict):
        hub.send_error(connection_id, "Message must be a JSON object")
        return
    mtype = str(msg.get("type") or "").strip().lower()
    data = msg.get("data")

    if mtype == ClientMessage.JOIN_BLOGS_ROOM.value:
        hub.join_blogs_room(connection_id)
    elif mtype == ClientMessage.JOIN_USER_ROOM.value:
        try:
            hub.join_user_room(connection_id, data)
        except ValueError as exc:
            hub.send_error(connection_id, str(exc))
    elif mtype == ClientMessage.USER_TYPING.value:
        try:
            hub.relay_typing(connection_id, data)
        except InvalidTypingPayload as exc:
            hub.send_error(connection_id, str(exc))
    elif mtype == ClientMessage.USER_STOPPED_TYPING.value:
        try:
            hub.relay_stopped_typing(connection_id, data)
        except InvalidTypingPayload as exc:
            hub.send_error(connection_id, str(exc))
    elif mtype == ClientMessage.PING.value:
        hub.send(connection_id, Envelope(type="pong"))
    elif mtype == ClientMessage.PONG.value:
        # Client heartbeat reply; nothing else to do.
        return
    else:
        hub.send_error(connection_id, f"Unknown message type: {mtype or '<empty>'}")


@router.websocket("")
async def websocket_endpoint(ws: WebSocket) -> None:
    hub = get_realtime_hub(ws)
    await ws.accept()
    conn = hub.connect(ws)
    cid = conn.id

    user_id = (ws.query_params.get("userId") or "").strip()
    if user_id:
        hub.join_user_room(cid, user_id)

    idle_ping_interval = float(settings.realtime.idle_ping_interval_s)
    pong_grace = float(settings.realtime.pong_grace_s)
    missed_limit = int(settings.realtime.missed_ping_limit)
    try:
        missed = 0
        while cid in hub.connections:
            if idle_ping_interval and idle_ping_interval > 0:
                try:
                    msg = await asyncio.wait_for(ws.receive_json(), timeout=idle_ping_interval)
                except asyncio.TimeoutError:
                    # Idle: send ping and wait a short grace for response
                    missed += 1
                    hub.send(cid, Envelope(type="ping"))
                    try:
                        msg = await asyncio.wait_for(ws.receive_json(), timeout=pong_grace)
                    except asyncio.TimeoutError:
                        if missed >= missed_limit:
                            logger.info("ws_heartbeat_timeout", connection_id=cid, missed=missed)
                            await ws.close(code=1001)
                            break
                        continue
            else:
                msg = await ws.receive_json()
            missed = 0
            handle_client_message(hub, cid, msg)
    except WebSocketDisconnect:
        logger.info("ws_client_closed", connection_id=cid)
    except ValueError as exc:
        # receive_json on a non-JSON frame
        logger.warning("ws_bad_frame", connection_id=cid, error=str(exc))
        await ws.close(code=1003)
    except Exception as exc:
        logger.error("ws_error", connection_id=cid, error=str(exc), exc_info=True)
    finally:
        hub.disconnect(cid)
