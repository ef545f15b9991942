"""
Realtime port and message DTOs (contracts-first).

Defines the wire envelope, the Change Event record handed from domain
operations to the hub, the room naming scheme and the publisher
protocol, so the application layer stays decoupled from the concrete
connection bookkeeping (infrastructure).
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Protocol
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone


ALL_BLOGS_ROOM = "blogs-room"
USER_ROOM_PREFIX = "user-"


def user_room(user_id: str) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def utc_now_z() -> str:
    ts = datetime.now(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


class ClientMessage(str, Enum):
    """Client -> Server message types."""

    JOIN_USER_ROOM = "join-user-room"
    JOIN_BLOGS_ROOM = "join-blogs-room"
    USER_TYPING = "user-typing"
    USER_STOPPED_TYPING = "user-stopped-typing"
    PING = "ping"
    PONG = "pong"


class EventKind(str, Enum):
    """Server -> Client Change Event kinds."""

    NEW_BLOG = "new-blog"
    BLOG_UPDATED = "blog-updated"
    BLOG_DELETED = "blog-deleted"
    PROFILE_UPDATED = "profile-updated"
    USER_LOGGED_IN = "user-logged-in"
    NEW_USER_REGISTERED = "new-user-registered"


TYPING_ACTIONS = ("creating", "editing")


class Envelope(BaseModel):
    """Unified WS message envelope.

    Fields:
      - type: message name (see ClientMessage / EventKind / typing / error)
      - data: payload; a string for ``join-user-room``, an object otherwise
      - ts: server-generated UTC timestamp (ISO8601 with Z)
    """

    type: str
    data: Any = None
    ts: str = Field(default_factory=utc_now_z)


class ChangeEvent(BaseModel):
    """One committed mutation, ready for fan-out.

    ``target_rooms`` empty means every connected client. ``payload`` is the
    exact ``data`` object clients receive and already contains ``message``.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    payload: dict[str, Any]
    target_rooms: tuple[str, ...] = ()
    message: str = ""

    @property
    def is_broadcast(self) -> bool:
        return not self.target_rooms

    def to_envelope(self) -> Envelope:
        return Envelope(type=self.kind.value, data=self.payload)


Handler = Callable[[ChangeEvent], Awaitable[None]]


class ChangeEventPublisher(Protocol):
    """Fire-and-forget hand-off used by application services.

    ``publish`` must never raise and never block on delivery; when the
    hub is unavailable the event is dropped.
    """

    def publish(self, event: ChangeEvent) -> bool: ...


class NullPublisher:
    """Publisher used when no hub is wired (events are dropped)."""

    def publish(self, event: ChangeEvent) -> bool:
        return False


__all__ = [
    "ALL_BLOGS_ROOM",
    "USER_ROOM_PREFIX",
    "user_room",
    "ClientMessage",
    "EventKind",
    "TYPING_ACTIONS",
    "Envelope",
    "ChangeEvent",
    "ChangeEventPublisher",
    "NullPublisher",
    "Handler",
]
