"""Client-side socket session: connect, rejoin rooms, reconnect with backoff.

State machine::

    disconnected --connect()--> connecting --ok--> connected
    connecting --fail--> backoff --sleep--> connecting ... (max attempts)
    connected --drop--> backoff
    any --disconnect()--> disconnected (no automatic reconnection)

The runner task is the only owner of the retry counter; tenacity drives
the attempts and the doubling delay.
"""
from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from application.ports.realtime import ClientMessage, Envelope
from client.transport import SocketTransport, TransportFactory, aiohttp_transport_factory
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

Listener = Callable[[Any], Any]

CONNECT = "connect"
DISCONNECT = "disconnect"
CONNECT_ERROR = "connect_error"


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"


class SocketSession:
    def __init__(
        self,
        url: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        transport_factory: Optional[TransportFactory] = None,
        base_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.url = url or settings.client.ws_url
        self.user_id = user_id
        self.base_delay = settings.client.reconnect_base_delay_s if base_delay is None else base_delay
        self.max_attempts = max_attempts or settings.client.reconnect_max_attempts
        self._factory = transport_factory or aiohttp_transport_factory(settings.client.timeout)
        self._sleep = sleep

        self.state = SessionState.DISCONNECTED
        self.gave_up = False
        self._listeners: Dict[str, List[Listener]] = {}
        self._transport: Optional[SocketTransport] = None
        self._runner: Optional[asyncio.Task] = None
        self._connected = asyncio.Event()
        self._pending: set = set()

    # -------------------- listeners --------------------
    def on(self, event: str, handler: Listener) -> None:
        handlers = self._listeners.setdefault(event, [])
        # the same handler twice would deliver every event twice
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: str, handler: Optional[Listener] = None) -> None:
        if handler is None:
            self._listeners.pop(event, None)
            return
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._listeners[event]

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def _dispatch(self, event: str, data: Any = None) -> None:
        for handler in list(self._listeners.get(event, ())):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    self._track(asyncio.ensure_future(result), event)
            except Exception as exc:
                logger.error("socket_listener_failed", event_type=event, error=str(exc), exc_info=True)

    def _track(self, task: asyncio.Future, event: str) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(lambda t: self._report_listener_failure(event, t))

    @staticmethod
    def _report_listener_failure(event: str, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("socket_listener_failed", event_type=event, error=str(exc), exc_info=exc)

    # -------------------- lifecycle --------------------
    @property
    def connected(self) -> bool:
        return self.state == SessionState.CONNECTED

    async def connect(self) -> None:
        """Start (or keep) the connection; calling it again is a no-op."""
        if self._runner is not None and not self._runner.done():
            return
        self.gave_up = False
        self._runner = asyncio.create_task(self._run(), name="socket-session")

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def disconnect(self) -> None:
        """Close the socket and stop automatic reconnection until connect()."""
        was_connected = self.connected
        runner, self._runner = self._runner, None
        if runner is not None and not runner.done():
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        await self._close_transport()
        self._connected.clear()
        self._set_state(SessionState.DISCONNECTED)
        if was_connected:
            self._dispatch(DISCONNECT, {"reason": "client disconnect"})

    def _set_state(self, state: SessionState) -> None:
        if state != self.state:
            logger.debug("socket_state", from_state=self.state.value, to_state=state.value)
            self.state = state

    async def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as exc:
            logger.debug("socket_close_failed", error=str(exc))

    async def _open_once(self) -> SocketTransport:
        self._set_state(SessionState.CONNECTING)
        try:
            return await self._factory(self.url)
        except Exception as exc:
            logger.warning("socket_connect_error", url=self.url, error=str(exc))
            self._dispatch(CONNECT_ERROR, {"error": str(exc)})
            raise

    def _enter_backoff(self, retry_state: RetryCallState) -> None:
        self._set_state(SessionState.BACKOFF)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.info("socket_reconnect_scheduled", attempt=retry_state.attempt_number, delay=delay)

    async def _open_with_retry(self) -> Optional[SocketTransport]:
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay),
            before_sleep=self._enter_backoff,
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._open_once()
        except Exception:
            return None
        return None

    async def _run(self) -> None:
        while True:
            transport = await self._open_with_retry()
            if transport is None:
                self.gave_up = True
                self._set_state(SessionState.DISCONNECTED)
                logger.warning("socket_gave_up", attempts=self.max_attempts)
                return

            self._transport = transport
            self._set_state(SessionState.CONNECTED)
            self._connected.set()
            logger.info("socket_connected", url=self.url)
            await self._join_rooms()
            self._dispatch(CONNECT)

            reason = await self._read_loop(transport)

            self._connected.clear()
            await self._close_transport()
            self._set_state(SessionState.BACKOFF)
            logger.info("socket_disconnected", reason=reason)
            self._dispatch(DISCONNECT, {"reason": reason})

    async def _join_rooms(self) -> None:
        # rooms live on the server connection, so every new connection rejoins
        await self._send(ClientMessage.JOIN_BLOGS_ROOM.value)
        if self.user_id:
            await self._send(ClientMessage.JOIN_USER_ROOM.value, str(self.user_id))

    async def _read_loop(self, transport: SocketTransport) -> str:
        while True:
            try:
                msg = await transport.receive()
            except Exception as exc:
                logger.warning("socket_receive_failed", error=str(exc))
                return "transport error"
            if msg is None:
                return "transport close"
            mtype = str(msg.get("type") or "")
            if mtype == ClientMessage.PING.value:
                await self._send(ClientMessage.PONG.value)
                continue
            self._dispatch(mtype, msg.get("data"))

    # -------------------- outgoing --------------------
    async def _send(self, mtype: str, data: Any = None) -> bool:
        transport = self._transport
        if transport is None:
            return False
        try:
            await transport.send(Envelope(type=mtype, data=data).model_dump())
        except Exception as exc:
            logger.warning("socket_send_failed", message_type=mtype, error=str(exc))
            return False
        return True

    async def emit(self, mtype: str, data: Any = None) -> bool:
        """Send one message; dropped (False) while not connected."""
        if not self.connected:
            logger.debug("socket_emit_dropped", message_type=mtype, state=self.state.value)
            return False
        return await self._send(mtype, data)

    async def join_user_room(self, user_id: str) -> bool:
        self.user_id = user_id
        return await self.emit(ClientMessage.JOIN_USER_ROOM.value, str(user_id))

    async def join_blogs_room(self) -> bool:
        return await self.emit(ClientMessage.JOIN_BLOGS_ROOM.value)

    async def send_typing(self, user_id: str, user_name: str, action: str) -> bool:
        return await self.emit(
            ClientMessage.USER_TYPING.value,
            {"userId": user_id, "userName": user_name, "action": action},
        )

    async def send_stopped_typing(self, user_id: str) -> bool:
        return await self.emit(ClientMessage.USER_STOPPED_TYPING.value, {"userId": user_id})
