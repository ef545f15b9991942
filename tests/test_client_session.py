import asyncio
from typing import List, Optional

import pytest

from client.session import CONNECT, CONNECT_ERROR, DISCONNECT, SessionState, SocketSession
from tests.conftest import wait_until


pytestmark = pytest.mark.asyncio


class FakeSocket:
    """Client-side socket double fed from the test."""

    def __init__(self) -> None:
        self.sent: List[dict] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, message: dict) -> None:
        self.sent.append(message)

    async def receive(self) -> Optional[dict]:
        return await self.incoming.get()

    async def close(self) -> None:
        self.closed = True

    def push(self, mtype: str, data=None) -> None:
        self.incoming.put_nowait({"type": mtype, "data": data, "ts": "2026-01-01T00:00:00Z"})

    def drop(self) -> None:
        self.incoming.put_nowait(None)

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]


class FakeFactory:
    """Hands out the scripted outcomes in order: a socket or an exception."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, url: str):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else ConnectionError("refused")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def make_session(factory, *, user_id="u1", sleep=None) -> SocketSession:
    return SocketSession(
        "ws://test/api/v1/ws",
        user_id=user_id,
        transport_factory=factory,
        base_delay=1.0,
        max_attempts=5,
        sleep=sleep or SleepRecorder(),
    )


async def test_connect_joins_rooms_and_dispatches():
    sock = FakeSocket()
    session = make_session(FakeFactory(sock))
    connected = []
    session.on(CONNECT, lambda _: connected.append(True))

    await session.connect()
    assert await session.wait_connected(1.0)

    assert session.state == SessionState.CONNECTED
    assert sock.sent[0]["type"] == "join-blogs-room"
    assert sock.sent[1] == {"type": "join-user-room", "data": "u1", "ts": sock.sent[1]["ts"]}
    assert connected == [True]
    await session.disconnect()


async def test_connect_is_idempotent():
    factory = FakeFactory(FakeSocket())
    session = make_session(factory)
    await session.connect()
    await session.connect()
    assert await session.wait_connected(1.0)
    assert factory.calls == 1
    await session.disconnect()


async def test_events_reach_listeners_and_ping_is_answered():
    sock = FakeSocket()
    session = make_session(FakeFactory(sock))
    seen = []
    session.on("new-blog", seen.append)
    await session.connect()
    await session.wait_connected(1.0)

    sock.push("ping")
    sock.push("new-blog", {"blog": {"id": "b1"}})
    await wait_until(lambda: seen)

    assert seen == [{"blog": {"id": "b1"}}]
    assert "pong" in sock.types()
    await session.disconnect()


async def test_duplicate_handler_registration_delivers_once():
    sock = FakeSocket()
    session = make_session(FakeFactory(sock))
    seen = []
    session.on("new-blog", seen.append)
    session.on("new-blog", seen.append)
    assert session.listener_count("new-blog") == 1

    await session.connect()
    await session.wait_connected(1.0)
    sock.push("new-blog", {"n": 1})
    sock.push("new-blog", {"n": 2})
    await wait_until(lambda: len(seen) == 2)
    assert seen == [{"n": 1}, {"n": 2}]

    session.off("new-blog", seen.append)
    assert session.listener_count("new-blog") == 0
    await session.disconnect()


async def test_reconnect_rejoins_rooms_without_duplicate_delivery():
    first, second = FakeSocket(), FakeSocket()
    sleep = SleepRecorder()
    session = make_session(FakeFactory(first, second), sleep=sleep)
    seen, drops = [], []
    session.on("new-blog", seen.append)
    session.on(DISCONNECT, drops.append)

    await session.connect()
    await session.wait_connected(1.0)
    first.drop()
    await wait_until(lambda: second.sent)
    await wait_until(lambda: session.connected)

    assert [m["type"] for m in second.sent] == ["join-blogs-room", "join-user-room"]
    assert drops == [{"reason": "transport close"}]
    assert first.closed
    # first reconnect attempt is immediate
    assert sleep.delays == []

    second.push("new-blog", {"blog": {"id": "b1"}})
    await wait_until(lambda: seen)
    await asyncio.sleep(0.01)
    assert seen == [{"blog": {"id": "b1"}}]
    await session.disconnect()


async def test_backoff_doubles_then_gives_up():
    sleep = SleepRecorder()
    factory = FakeFactory()
    session = make_session(factory, sleep=sleep)
    errors, states = [], []
    session.on(CONNECT_ERROR, errors.append)

    original = session._set_state

    def spy(state):
        states.append(state)
        original(state)

    session._set_state = spy

    await session.connect()
    await wait_until(lambda: session.gave_up)

    assert factory.calls == 5
    assert len(errors) == 5
    assert sleep.delays == [1, 2, 4, 8]
    assert SessionState.BACKOFF in states
    assert session.state == SessionState.DISCONNECTED
    assert await session.emit("user-typing", {}) is False


async def test_recovers_before_attempts_run_out():
    sock = FakeSocket()
    sleep = SleepRecorder()
    session = make_session(FakeFactory(ConnectionError("x"), ConnectionError("y"), sock), sleep=sleep)

    await session.connect()
    assert await session.wait_connected(1.0)
    assert sleep.delays == [1, 2]
    assert not session.gave_up
    await session.disconnect()


async def test_disconnect_stops_reconnection():
    sock = FakeSocket()
    factory = FakeFactory(sock, FakeSocket())
    session = make_session(factory)
    drops = []
    session.on(DISCONNECT, drops.append)

    await session.connect()
    await session.wait_connected(1.0)
    await session.disconnect()
    await asyncio.sleep(0.01)

    assert factory.calls == 1
    assert sock.closed
    assert session.state == SessionState.DISCONNECTED
    assert drops == [{"reason": "client disconnect"}]


async def test_emit_while_disconnected_is_dropped():
    session = make_session(FakeFactory())
    assert await session.send_typing("u1", "Ann", "creating") is False


async def test_listener_errors_do_not_break_reading():
    sock = FakeSocket()
    session = make_session(FakeFactory(sock))
    seen = []

    def broken(_):
        raise RuntimeError("boom")

    session.on("blog-updated", broken)
    session.on("blog-updated", seen.append)
    await session.connect()
    await session.wait_connected(1.0)
    sock.push("blog-updated", {"blog": {"id": "b1"}})
    await wait_until(lambda: seen)
    assert session.connected
    await session.disconnect()


class RecordingLogger:
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def __getattr__(self, level):
        def record(event, **kw):
            self.events.append((level, event, kw))
        return record


async def test_async_listener_failure_is_logged(monkeypatch):
    import client.session as session_module

    log = RecordingLogger()
    monkeypatch.setattr(session_module, "logger", log)
    sock = FakeSocket()
    session = make_session(FakeFactory(sock))
    seen = []

    async def broken(_):
        raise RuntimeError("boom")

    session.on("new-blog", broken)
    session.on("new-blog", seen.append)
    await session.connect()
    await session.wait_connected(1.0)
    sock.push("new-blog", {"blog": {"id": "b1"}})
    await wait_until(lambda: any(e == "socket_listener_failed" for _, e, _ in log.events))

    level, _, fields = next(x for x in log.events if x[1] == "socket_listener_failed")
    assert level == "error"
    assert fields["event_type"] == "new-blog"
    assert fields["error"] == "boom"
    assert seen == [{"blog": {"id": "b1"}}]
    assert session.connected
    await session.disconnect()
