"""Application service for the realtime Event Hub.

Keeps application logic (room rules, typing validation, change-event
fan-out) separate from the concrete connection bookkeeping and the
in-process channel that carries events from request handlers.
"""
from __future__ import annotations

from typing import Any, Optional

from application.ports.realtime import (
    ALL_BLOGS_ROOM,
    TYPING_ACTIONS,
    ChangeEvent,
    ClientMessage,
    Envelope,
    user_room,
)
from core.logging_config import get_logger
from infrastructure.realtime.connection_manager import Connection, ConnectionManager, Transport
from infrastructure.realtime.event_channel import InMemoryEventChannel


logger = get_logger(__name__)


class InvalidTypingPayload(ValueError):
    """A typing signal that must not be relayed."""


class RealtimeHub:
    def __init__(
        self,
        *,
        connections: Optional[ConnectionManager] = None,
        channel: Optional[InMemoryEventChannel] = None,
    ) -> None:
        self._conn = connections or ConnectionManager()
        self._channel = channel or InMemoryEventChannel()
        self._running = False

    # -------------------- lifecycle --------------------
    async def start(self) -> None:
        if self._running:
            return
        self._channel.subscribe(self.on_change_event)
        await self._channel.start()
        self._running = True
        logger.info("hub_started")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        await self._channel.aclose()
        await self._conn.close_all()
        logger.info("hub_stopped")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def connections(self) -> ConnectionManager:
        return self._conn

    # -------------------- publisher --------------------
    def publish(self, event: ChangeEvent) -> bool:
        """Non-blocking hand-off from domain operations; never raises."""
        if not self._running:
            logger.debug("realtime_event_dropped", kind=event.kind.value, reason="hub_stopped")
            return False
        return self._channel.publish_nowait(event)

    async def flush(self) -> None:
        """Wait for queued events to be fanned out and written to transports."""
        await self._channel.join()
        await self._conn.flush()

    # -------------------- connection use-cases --------------------
    def connect(self, transport: Transport, connection_id: Optional[str] = None) -> Connection:
        return self._conn.register(transport, connection_id)

    def disconnect(self, connection_id: str) -> None:
        self._conn.unregister(connection_id)

    def join_blogs_room(self, connection_id: str) -> bool:
        return self._conn.join(connection_id, ALL_BLOGS_ROOM)

    def join_user_room(self, connection_id: str, user_id: Any) -> bool:
        if user_id is not None and not isinstance(user_id, str):
            raise ValueError("userId must be a string")
        uid = (user_id or "").strip()
        if not uid:
            raise ValueError("userId is required")
        return self._conn.join_user_room(connection_id, user_room(uid))

    def relay_typing(self, connection_id: str, data: Any) -> int:
        if not isinstance(data, dict) or not str(data.get("userId") or "").strip():
            raise InvalidTypingPayload("userId is required")
        if data.get("action") not in TYPING_ACTIONS:
            raise InvalidTypingPayload(f"action must be one of {', '.join(TYPING_ACTIONS)}")
        return self._relay(connection_id, ClientMessage.USER_TYPING, data)

    def relay_stopped_typing(self, connection_id: str, data: Any) -> int:
        if not isinstance(data, dict) or not str(data.get("userId") or "").strip():
            raise InvalidTypingPayload("userId is required")
        return self._relay(connection_id, ClientMessage.USER_STOPPED_TYPING, data)

    def send(self, connection_id: str, envelope: Envelope) -> bool:
        return self._conn.send(connection_id, envelope.model_dump())

    def send_error(self, connection_id: str, message: str) -> bool:
        return self.send(connection_id, Envelope(type="error", data={"message": message}))

    def _relay(self, connection_id: str, kind: ClientMessage, data: dict) -> int:
        # typing signals are never stored; sender is excluded
        env = Envelope(type=kind.value, data=data)
        count = self._conn.broadcast([ALL_BLOGS_ROOM], env.model_dump(), exclude=connection_id)
        logger.debug("hub_typing_relayed", type=kind.value, connection_id=connection_id, recipients=count)
        return count

    # -------------------- channel callback --------------------
    async def on_change_event(self, event: ChangeEvent) -> None:
        payload = event.to_envelope().model_dump()
        if event.is_broadcast:
            count = self._conn.broadcast_all(payload)
        else:
            count = self._conn.broadcast(event.target_rooms, payload)
        logger.info(
            "realtime_event_dispatched",
            kind=event.kind.value,
            rooms=list(event.target_rooms) or "*",
            recipients=count,
        )
