import asyncio

import pytest

from client.typing_indicator import TypingIndicator, TypingTracker


pytestmark = pytest.mark.asyncio


class Recorder:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, mtype, data):
        self.calls.append((mtype, data))

    def types(self):
        return [t for t, _ in self.calls]


class Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


async def test_defaults():
    indicator = TypingIndicator(Recorder(), user_id="u1", user_name="Ann")
    assert indicator.idle_s == 2.0
    assert TypingTracker().expiry_s == 3.0


async def test_burst_sends_one_typing_then_one_stop_after_idle():
    emit = Recorder()
    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann", action="editing", idle_s=0.2)

    for _ in range(5):
        indicator.input()
        await asyncio.sleep(0.01)
    assert emit.types() == ["user-typing"]
    assert emit.calls[0][1] == {"userId": "u1", "userName": "Ann", "action": "editing"}

    await asyncio.sleep(0.35)
    assert emit.types() == ["user-typing", "user-stopped-typing"]
    assert emit.calls[1][1] == {"userId": "u1"}


async def test_submit_stops_once_and_cancels_timer():
    emit = Recorder()
    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann", idle_s=0.05)
    indicator.input()
    indicator.submit()
    indicator.unmount()
    await asyncio.sleep(0.1)
    assert emit.types() == ["user-typing", "user-stopped-typing"]


async def test_stop_without_typing_sends_nothing():
    emit = Recorder()
    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann")
    indicator.unmount()
    assert emit.calls == []


async def test_new_burst_after_stop_sends_typing_again():
    emit = Recorder()
    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann", idle_s=0.02)
    indicator.input()
    await asyncio.sleep(0.05)
    indicator.input()
    indicator.submit()
    assert emit.types() == ["user-typing", "user-stopped-typing", "user-typing", "user-stopped-typing"]


async def test_async_emit_is_scheduled():
    sent = []

    async def emit(mtype, data):
        sent.append(mtype)
        return True

    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann")
    indicator.input()
    indicator.stop()
    await indicator.drain()
    assert sent == ["user-typing", "user-stopped-typing"]


async def test_invalid_action_rejected():
    with pytest.raises(ValueError):
        TypingIndicator(Recorder(), user_id="u1", user_name="Ann", action="deleting")


async def test_tracker_expires_after_window():
    clock = Clock()
    tracker = TypingTracker(clock=clock)
    tracker.on_typing({"userId": "u1", "userName": "Ann", "action": "creating"})

    clock.now = 102.9
    assert [t.user_name for t in tracker.active()] == ["Ann"]
    clock.now = 103.0
    assert tracker.active() == []


async def test_tracker_stop_signal_wins_over_expiry():
    clock = Clock()
    tracker = TypingTracker(clock=clock)
    tracker.on_typing({"userId": "u1", "userName": "Ann", "action": "creating"})
    tracker.on_stopped({"userId": "u1"})
    assert not tracker.is_typing("u1")


async def test_tracker_refresh_restarts_window():
    clock = Clock()
    tracker = TypingTracker(clock=clock)
    tracker.on_typing({"userId": "u1", "userName": "Ann", "action": "creating"})
    clock.now += 2.0
    tracker.on_typing({"userId": "u1", "userName": "Ann", "action": "editing"})
    clock.now += 2.0
    assert tracker.is_typing("u1")
    assert tracker.active()[0].action == "editing"


async def test_tracker_ignores_malformed_signals():
    tracker = TypingTracker()
    tracker.on_typing(None)
    tracker.on_typing({"userName": "Ann"})
    assert tracker.active() == []


async def test_dropped_typing_send_is_retried_on_next_input():
    results = [False, True, True]
    calls = []

    def emit(mtype, data):
        calls.append(mtype)
        return results.pop(0)

    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann")
    indicator.input()
    assert not indicator.active

    indicator.input()
    assert indicator.active
    indicator.submit()
    assert calls == ["user-typing", "user-typing", "user-stopped-typing"]


async def test_no_typing_while_disconnected():
    emit = Recorder()
    connected = [False]
    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann", is_connected=lambda: connected[0])
    indicator.input()
    indicator.submit()
    assert emit.calls == []

    connected[0] = True
    indicator.input()
    indicator.submit()
    assert emit.types() == ["user-typing", "user-stopped-typing"]


async def test_async_send_failure_resets_active():
    sent = []

    async def emit(mtype, data):
        sent.append(mtype)
        return len(sent) > 1

    indicator = TypingIndicator(emit, user_id="u1", user_name="Ann")
    indicator.input()
    await indicator.drain()
    await asyncio.sleep(0)
    assert not indicator.active

    indicator.input()
    await indicator.drain()
    assert indicator.active
    indicator.stop()
    await indicator.drain()
    assert sent == ["user-typing", "user-typing", "user-stopped-typing"]
