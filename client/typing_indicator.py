"""Typing indicators.

``TypingIndicator`` is the sending side: one ``user-typing`` per burst of
input, then exactly one ``user-stopped-typing`` after the idle timeout,
on submit, or on unmount.

``TypingTracker`` is the receiving side: remembers who is typing and
forgets a signal after the expiry window unless a stop arrives first.
"""
from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from application.ports.realtime import TYPING_ACTIONS, ClientMessage
from core.config import settings


Emit = Callable[[str, Any], Any]


class TypingIndicator:
    def __init__(
        self,
        emit: Emit,
        *,
        user_id: str,
        user_name: str,
        action: str = "creating",
        idle_s: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        is_connected: Optional[Callable[[], bool]] = None,
    ) -> None:
        if action not in TYPING_ACTIONS:
            raise ValueError(f"action must be one of {', '.join(TYPING_ACTIONS)}")
        self._emit = emit
        self.user_id = user_id
        self.user_name = user_name
        self.action = action
        self.idle_s = settings.client.typing_idle_s if idle_s is None else idle_s
        self._loop = loop
        self._is_connected = is_connected
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set = set()
        self.active = False

    def input(self) -> None:
        """Call on every keystroke; restarts the idle timer.

        Nothing is sent while the socket is down, and ``active`` only
        latches once the typing message was actually handed off, so the
        next keystroke retries after a failed send.
        """
        if self._is_connected is not None and not self._is_connected():
            return
        if not self.active:
            self.active = True
            sent = self._send(ClientMessage.USER_TYPING.value, {
                "userId": self.user_id,
                "userName": self.user_name,
                "action": self.action,
            }, on_failure=self._reset_active)
            if not sent:
                self.active = False
                return
        self._cancel_timer()
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.idle_s, self._on_idle)

    def submit(self) -> None:
        self.stop()

    def unmount(self) -> None:
        self.stop()

    def stop(self) -> None:
        self._cancel_timer()
        if not self.active:
            return
        self.active = False
        self._send(ClientMessage.USER_STOPPED_TYPING.value, {"userId": self.user_id})

    async def drain(self) -> None:
        """Wait for emitted messages that are still being sent."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_idle(self) -> None:
        self._timer = None
        self.stop()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reset_active(self) -> None:
        self.active = False
        self._cancel_timer()

    def _send(self, mtype: str, data: dict, on_failure: Optional[Callable[[], None]] = None) -> bool:
        """Emit one message. Returns False when a sync emit reports a drop.

        Awaitable emits are scheduled; ``on_failure`` runs if the send later
        fails or reports a drop.
        """
        result = self._emit(mtype, data)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            if on_failure is not None:
                task.add_done_callback(lambda t: self._check_sent(t, on_failure))
            return True
        return result is not False

    @staticmethod
    def _check_sent(task: asyncio.Future, on_failure: Callable[[], None]) -> None:
        if task.cancelled() or task.exception() is not None or task.result() is False:
            on_failure()


@dataclass
class TypingUser:
    user_id: str
    user_name: str
    action: str
    received_at: float


class TypingTracker:
    def __init__(self, *, expiry_s: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.expiry_s = settings.client.typing_expiry_s if expiry_s is None else expiry_s
        self._clock = clock
        self._typing: Dict[str, TypingUser] = {}

    def on_typing(self, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("userId"):
            return
        uid = str(data["userId"])
        self._typing[uid] = TypingUser(
            user_id=uid,
            user_name=str(data.get("userName") or ""),
            action=str(data.get("action") or ""),
            received_at=self._clock(),
        )

    def on_stopped(self, data: Any) -> None:
        if isinstance(data, dict) and data.get("userId"):
            self._typing.pop(str(data["userId"]), None)

    def active(self) -> List[TypingUser]:
        now = self._clock()
        expired = [uid for uid, t in self._typing.items() if now - t.received_at >= self.expiry_s]
        for uid in expired:
            del self._typing[uid]
        return list(self._typing.values())

    def is_typing(self, user_id: str) -> bool:
        return any(t.user_id == user_id for t in self.active())

    def attach(self, session) -> None:
        session.on(ClientMessage.USER_TYPING.value, self.on_typing)
        session.on(ClientMessage.USER_STOPPED_TYPING.value, self.on_stopped)

    def detach(self, session) -> None:
        session.off(ClientMessage.USER_TYPING.value, self.on_typing)
        session.off(ClientMessage.USER_STOPPED_TYPING.value, self.on_stopped)
        self._typing.clear()
