import pytest

from application.ports.realtime import ALL_BLOGS_ROOM, user_room
from infrastructure.realtime.connection_manager import ConnectionManager, ConnectionState
from tests.conftest import FakeTransport, wait_until


pytestmark = pytest.mark.asyncio


@pytest.fixture
async def manager():
    m = ConnectionManager(queue_max=10, overflow_policy="drop_oldest")
    yield m
    await m.close_all()


async def test_register_and_unregister_track_state(manager):
    t = FakeTransport()
    conn = manager.register(t, "c1")
    assert conn.state == ConnectionState.CONNECTED
    assert "c1" in manager and len(manager) == 1

    manager.join("c1", ALL_BLOGS_ROOM)
    gone = manager.unregister("c1")
    assert gone is conn
    assert gone.state == ConnectionState.DISCONNECTED
    assert "c1" not in manager
    assert manager.members(ALL_BLOGS_ROOM) == frozenset()
    # unknown ids are ignored
    assert manager.unregister("c1") is None


async def test_duplicate_connection_id_rejected(manager):
    manager.register(FakeTransport(), "c1")
    with pytest.raises(ValueError):
        manager.register(FakeTransport(), "c1")


async def test_join_is_idempotent(manager):
    t = FakeTransport()
    manager.register(t, "c1")
    assert manager.join("c1", ALL_BLOGS_ROOM) is True
    assert manager.join("c1", ALL_BLOGS_ROOM) is False
    assert manager.members(ALL_BLOGS_ROOM) == frozenset({"c1"})

    manager.broadcast([ALL_BLOGS_ROOM], {"type": "x", "data": 1})
    await manager.flush()
    assert len(t.sent) == 1


async def test_join_unknown_connection_is_noop(manager):
    assert manager.join("ghost", ALL_BLOGS_ROOM) is False
    assert manager.room_names() == frozenset()


async def test_room_isolation(manager):
    a, b = FakeTransport(), FakeTransport()
    manager.register(a, "a")
    manager.register(b, "b")
    manager.join("a", user_room("u1"))
    manager.join("b", user_room("u2"))

    manager.broadcast([user_room("u1")], {"type": "profile-updated", "data": {}})
    await manager.flush()

    assert a.types() == ["profile-updated"]
    assert b.sent == []


async def test_union_fanout_delivers_once(manager):
    t = FakeTransport()
    manager.register(t, "c1")
    manager.join("c1", ALL_BLOGS_ROOM)
    manager.join("c1", user_room("u1"))

    count = manager.broadcast([ALL_BLOGS_ROOM, user_room("u1")], {"type": "new-blog", "data": {}})
    await manager.flush()

    assert count == 1
    assert t.types() == ["new-blog"]


async def test_broadcast_excludes_sender(manager):
    a, b = FakeTransport(), FakeTransport()
    manager.register(a, "a")
    manager.register(b, "b")
    manager.join("a", ALL_BLOGS_ROOM)
    manager.join("b", ALL_BLOGS_ROOM)

    manager.broadcast([ALL_BLOGS_ROOM], {"type": "user-typing", "data": {}}, exclude="a")
    await manager.flush()

    assert a.sent == []
    assert b.types() == ["user-typing"]


async def test_broadcast_all_reaches_connections_without_rooms(manager):
    a, b = FakeTransport(), FakeTransport()
    manager.register(a, "a")
    manager.register(b, "b")
    manager.join("a", ALL_BLOGS_ROOM)

    assert manager.broadcast_all({"type": "user-registered", "data": {}}) == 2
    await manager.flush()
    assert a.types() == b.types() == ["user-registered"]


async def test_delivery_order_is_fifo(manager):
    t = FakeTransport()
    manager.register(t, "c1")
    manager.join("c1", ALL_BLOGS_ROOM)
    for i in range(5):
        manager.broadcast([ALL_BLOGS_ROOM], {"type": "n", "data": i})
    await manager.flush()
    assert [m["data"] for m in t.sent] == [0, 1, 2, 3, 4]


async def test_empty_rooms_are_removed(manager):
    manager.register(FakeTransport(), "a")
    manager.register(FakeTransport(), "b")
    manager.join("a", "r")
    manager.join("b", "r")

    manager.leave("a", "r")
    assert "r" in manager.room_names()
    manager.unregister("b")
    assert "r" not in manager.room_names()


async def test_user_room_is_replaced(manager):
    manager.register(FakeTransport(), "c1")
    manager.join("c1", ALL_BLOGS_ROOM)
    assert manager.join_user_room("c1", user_room("u1")) is True
    assert manager.join_user_room("c1", user_room("u1")) is False
    assert manager.join_user_room("c1", user_room("u2")) is True

    assert manager.rooms_of("c1") == frozenset({ALL_BLOGS_ROOM, user_room("u2")})
    assert manager.members(user_room("u1")) == frozenset()


async def test_overflow_drop_oldest():
    m = ConnectionManager(queue_max=2, overflow_policy="drop_oldest")
    t = FakeTransport()
    m.register(t, "c1")
    # sender has not run yet, so the queue fills synchronously
    for i in range(3):
        m.send("c1", {"type": "n", "data": i})
    await m.flush()
    assert [p["data"] for p in t.sent] == [1, 2]
    await m.close_all()


async def test_unknown_overflow_policy_falls_back_to_drop_oldest():
    m = ConnectionManager(queue_max=2, overflow_policy="bogus")
    assert m.overflow_policy == "drop_oldest"
    t = FakeTransport()
    m.register(t, "c1")
    for i in range(3):
        m.send("c1", {"type": "n", "data": i})
    await m.flush()
    assert [p["data"] for p in t.sent] == [1, 2]
    await m.close_all()


async def test_overflow_drop_new():
    m = ConnectionManager(queue_max=2, overflow_policy="drop_new")
    t = FakeTransport()
    m.register(t, "c1")
    results = [m.send("c1", {"type": "n", "data": i}) for i in range(3)]
    await m.flush()
    assert results == [True, True, False]
    assert [p["data"] for p in t.sent] == [0, 1]
    await m.close_all()


async def test_overflow_disconnect():
    m = ConnectionManager(queue_max=1, overflow_policy="disconnect")
    t = FakeTransport()
    m.register(t, "c1")
    m.join("c1", ALL_BLOGS_ROOM)
    m.send("c1", {"type": "n", "data": 0})
    assert m.send("c1", {"type": "n", "data": 1}) is False

    assert "c1" not in m
    assert m.members(ALL_BLOGS_ROOM) == frozenset()
    await wait_until(lambda: t.closed == 1013)
    await m.close_all()


async def test_send_failure_unregisters(manager):
    t = FakeTransport(fail=True)
    manager.register(t, "c1")
    manager.join("c1", ALL_BLOGS_ROOM)
    manager.send("c1", {"type": "n", "data": 0})

    await wait_until(lambda: "c1" not in manager)
    assert manager.members(ALL_BLOGS_ROOM) == frozenset()


async def test_close_all_closes_transports():
    m = ConnectionManager()
    a, b = FakeTransport(), FakeTransport()
    m.register(a, "a")
    m.register(b, "b")
    await m.close_all()
    assert len(m) == 0
    assert a.closed == b.closed == 1001
