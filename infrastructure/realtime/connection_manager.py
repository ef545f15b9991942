"""In-process connection registry and room membership table.

Keeps an explicit ``room -> {connection_id}`` map next to the per-connection
state, and fans payloads out by enqueueing onto each connection's bounded
FIFO send queue. A dedicated sender task per connection drains its queue,
so one slow client never blocks the others and delivery order per
connection equals enqueue order.

All methods except the sender loop and ``close_all`` are synchronous and
must be called from the event loop thread; membership is only ever
mutated there, so no lock is needed.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Protocol, Set

from application.ports.realtime import USER_ROOM_PREFIX
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

OVERFLOW_POLICIES = ("drop_oldest", "drop_new", "disconnect")


class Transport(Protocol):
    """What the manager needs from a socket (FastAPI ``WebSocket`` fits)."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(eq=False)
class Connection:
    id: str
    transport: Transport
    queue: asyncio.Queue
    state: ConnectionState = ConnectionState.CONNECTING
    rooms: Set[str] = field(default_factory=set)
    sender: Optional[asyncio.Task] = None

    @property
    def user_room(self) -> Optional[str]:
        for room in self.rooms:
            if room.startswith(USER_ROOM_PREFIX):
                return room
        return None


class ConnectionManager:
    """Manage per-process connections and room memberships."""

    def __init__(self, *, queue_max: Optional[int] = None, overflow_policy: Optional[str] = None) -> None:
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._queue_max = max(1, int(queue_max or settings.realtime.send_queue_max))
        policy = (overflow_policy or settings.realtime.overflow_policy).lower()
        if policy not in OVERFLOW_POLICIES:
            logger.warning("ws_send_queue_policy_invalid", policy=policy, fallback="drop_oldest")
            policy = "drop_oldest"
        self._overflow_policy = policy
        # close() tasks scheduled by the "disconnect" overflow policy
        self._closing: Set[asyncio.Task] = set()

    @property
    def overflow_policy(self) -> str:
        return self._overflow_policy

    # -------------------- lifecycle --------------------
    def register(self, transport: Transport, connection_id: Optional[str] = None) -> Connection:
        """Connecting -> Connected: track the connection and start its sender."""
        cid = connection_id or uuid.uuid4().hex
        if cid in self._connections:
            raise ValueError(f"connection {cid} already registered")
        conn = Connection(id=cid, transport=transport, queue=asyncio.Queue(maxsize=self._queue_max))
        conn.sender = asyncio.create_task(self._sender_loop(conn), name=f"ws-sender-{cid}")
        conn.state = ConnectionState.CONNECTED
        self._connections[cid] = conn
        logger.info("ws_connected", connection_id=cid, connections=len(self._connections))
        return conn

    def unregister(self, connection_id: str) -> Optional[Connection]:
        """Connected -> Disconnected: drop every membership and stop the sender."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return None
        for room in list(conn.rooms):
            self._discard_member(room, connection_id)
        conn.rooms.clear()
        conn.state = ConnectionState.DISCONNECTED

        task = conn.sender
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        # pending payloads are dropped; keep queue.join() callers from hanging
        while not conn.queue.empty():
            conn.queue.get_nowait()
            conn.queue.task_done()
        logger.info("ws_disconnected", connection_id=connection_id, connections=len(self._connections))
        return conn

    async def close_all(self, code: int = 1001) -> None:
        for cid in list(self._connections):
            conn = self.unregister(cid)
            if conn is None:
                continue
            try:
                await conn.transport.close(code=code)
            except Exception as exc:
                logger.debug("ws_close_failed", connection_id=cid, error=str(exc))
        for task in list(self._closing):
            task.cancel()

    # -------------------- rooms --------------------
    def join(self, connection_id: str, room: str) -> bool:
        """Idempotent join; returns False when already a member or unknown."""
        conn = self._connections.get(connection_id)
        if conn is None or room in conn.rooms:
            return False
        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(connection_id)
        logger.info("ws_join_room", connection_id=connection_id, room=room)
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None or room not in conn.rooms:
            return False
        conn.rooms.discard(room)
        self._discard_member(room, connection_id)
        logger.info("ws_leave_room", connection_id=connection_id, room=room)
        return True

    def join_user_room(self, connection_id: str, room: str) -> bool:
        """A connection holds at most one user room: joining another replaces it."""
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        current = conn.user_room
        if current == room:
            return False
        if current is not None:
            self.leave(connection_id, current)
        return self.join(connection_id, room)

    def _discard_member(self, room: str, connection_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            # rooms cease to exist when empty
            del self._rooms[room]

    # -------------------- queries --------------------
    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def members(self, room: str) -> frozenset:
        return frozenset(self._rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> frozenset:
        conn = self._connections.get(connection_id)
        return frozenset(conn.rooms) if conn else frozenset()

    def room_names(self) -> frozenset:
        return frozenset(self._rooms)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    # -------------------- fan-out --------------------
    def broadcast(self, rooms: Iterable[str], payload: dict, *, exclude: Optional[str] = None) -> int:
        """Enqueue ``payload`` once for every member of any of ``rooms``."""
        targets: Set[str] = set()
        for room in rooms:
            targets.update(self._rooms.get(room, ()))
        targets.discard(exclude)
        return self._enqueue_many(targets, payload)

    def broadcast_all(self, payload: dict, *, exclude: Optional[str] = None) -> int:
        targets = set(self._connections)
        targets.discard(exclude)
        return self._enqueue_many(targets, payload)

    def send(self, connection_id: str, payload: dict) -> bool:
        conn = self._connections.get(connection_id)
        return conn is not None and self._enqueue(conn, payload)

    async def flush(self) -> None:
        """Wait until every live connection's queue has been handed to its transport."""
        for conn in list(self._connections.values()):
            await conn.queue.join()

    def _enqueue_many(self, connection_ids: Iterable[str], payload: dict) -> int:
        delivered = 0
        for cid in sorted(connection_ids):
            conn = self._connections.get(cid)
            if conn is not None and self._enqueue(conn, payload):
                delivered += 1
        return delivered

    def _enqueue(self, conn: Connection, payload: dict) -> bool:
        try:
            conn.queue.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            pass

        policy = self._overflow_policy
        if policy == "drop_new":
            logger.warning("ws_send_queue_drop_new", connection_id=conn.id)
            return False
        if policy == "disconnect":
            logger.warning("ws_send_queue_disconnect", connection_id=conn.id)
            self.unregister(conn.id)
            task = asyncio.create_task(conn.transport.close(code=1013))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)
            return False
        # drop_oldest
        conn.queue.get_nowait()
        conn.queue.task_done()
        conn.queue.put_nowait(payload)
        logger.warning("ws_send_queue_drop_oldest", connection_id=conn.id)
        return True

    async def _sender_loop(self, conn: Connection) -> None:
        q = conn.queue
        try:
            while True:
                payload = await q.get()
                try:
                    await conn.transport.send_json(payload)
                except Exception as exc:
                    # transport errors end the connection; the hub does not retry
                    logger.warning("ws_send_failed", connection_id=conn.id, error=str(exc))
                    q.task_done()
                    self.unregister(conn.id)
                    return
                q.task_done()
        except asyncio.CancelledError:
            return
