import pytest

from client.feed import RealtimeBlogFeed
from client.session import SocketSession
from client.typing_indicator import TypingTracker


pytestmark = pytest.mark.asyncio


class FakeAPI:
    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def list_blogs(self, page=1, size=10):
        self.calls.append((page, size))
        return self.pages[page]


def page(ids, total, has_next):
    return {"items": [{"id": i, "title": i} for i in ids], "total": total, "has_next": has_next}


@pytest.fixture
def session():
    return SocketSession("ws://test/ws", transport_factory=None)


@pytest.fixture
def feed(session):
    api = FakeAPI({1: page(["b3", "b2"], 3, True), 2: page(["b2", "b1"], 3, False)})
    return RealtimeBlogFeed(api, session, page_size=2, tracker=TypingTracker(clock=lambda: 0.0))


async def test_load_and_load_more(feed):
    await feed.load()
    assert [b["id"] for b in feed.blogs] == ["b3", "b2"]
    assert feed.has_more

    await feed.load_more()
    assert [b["id"] for b in feed.blogs] == ["b3", "b2", "b1"]
    assert not feed.has_more
    # nothing left to fetch
    await feed.load_more()
    assert len(feed._api.calls) == 2


async def test_remount_does_not_duplicate_handlers(feed, session):
    feed.mount()
    feed.mount()
    assert session.listener_count("new-blog") == 1
    assert session.listener_count("user-typing") == 1

    feed.unmount()
    feed.mount()
    assert session.listener_count("new-blog") == 1

    feed.unmount()
    assert session.listener_count("new-blog") == 0
    assert session.listener_count("user-typing") == 0


async def test_socket_events_update_list(feed, session):
    await feed.load()
    feed.mount()

    session._dispatch("new-blog", {"blog": {"id": "b4", "title": "new"}, "message": "m1"})
    session._dispatch("new-blog", {"blog": {"id": "b4", "title": "new"}, "message": "m1"})
    assert [b["id"] for b in feed.blogs] == ["b4", "b3", "b2"]
    assert feed.total == 4
    assert feed.last_message == "m1"

    session._dispatch("blog-updated", {"blog": {"id": "b3", "title": "edited"}, "message": "m2"})
    assert feed.blogs[1]["title"] == "edited"

    session._dispatch("blog-deleted", {"blogId": "b2", "message": "m3"})
    assert [b["id"] for b in feed.blogs] == ["b4", "b3"]
    assert feed.total == 3

    # unknown id leaves the count alone
    session._dispatch("blog-deleted", {"blogId": "zz", "message": "m4"})
    assert feed.total == 3


async def test_typing_users_follow_socket_signals(feed, session):
    feed.mount()
    session._dispatch("user-typing", {"userId": "u1", "userName": "Ann", "action": "creating"})
    assert [t.user_name for t in feed.typing_users] == ["Ann"]
    session._dispatch("user-stopped-typing", {"userId": "u1"})
    assert feed.typing_users == []


async def test_unmounted_feed_ignores_events(feed, session):
    await feed.load()
    session._dispatch("new-blog", {"blog": {"id": "b9"}})
    assert [b["id"] for b in feed.blogs] == ["b3", "b2"]
