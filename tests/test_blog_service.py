import pytest
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import async_sessionmaker

from application.dto import BlogCreateDTO, BlogUpdateDTO, UserSignupDTO
from application.ports.realtime import ALL_BLOGS_ROOM, EventKind, user_room
from application.services.blog_service import BlogApplicationService
from application.services.user_service import UserApplicationService
from domain.common.exceptions import (
    BlogNotFoundException,
    DomainValidationException,
    InvalidIdentifierException,
    UserNotFoundException,
)
from infrastructure.models.user import UserModel
from infrastructure.repositories.user_repository import SQLAlchemyUserRepository
from tests.conftest import IMAGE


pytestmark = pytest.mark.asyncio


@pytest.fixture
def users(uow_factory):
    return UserApplicationService(uow_factory)


@pytest.fixture
def blogs(uow_factory, publisher):
    return BlogApplicationService(uow_factory, publisher)


@pytest.fixture
async def author(users):
    return await users.register_user(UserSignupDTO(name="Ann Lee", email="ann@example.com", password="secret1"))


def new_blog(author_id: str, title: str = "Green tea notes", **kw) -> BlogCreateDTO:
    data = {
        "title": title,
        "description": kw.pop("description", "Steeping times and temperatures that work."),
        "image": IMAGE,
        "user": author_id,
    }
    data.update(kw)
    return BlogCreateDTO(**data)


async def test_create_publishes_after_commit(blogs, users, author, publisher):
    blog = await blogs.create_blog(new_blog(author.id, tags=["Tea", "tea", " Brewing "]))

    assert blog.user.name == "Ann Lee"
    assert blog.tags == ["tea", "brewing"]
    assert blog.reading_time == 1
    assert (await users.get_user(author.id)).blog_count == 1

    event = publisher.events[0]
    assert event.kind == EventKind.NEW_BLOG
    assert event.target_rooms == (ALL_BLOGS_ROOM, user_room(author.id))
    assert event.payload["message"] == 'New blog "Green tea notes" published by Ann Lee'
    assert event.payload["blog"]["id"] == blog.id


async def test_failed_author_update_rolls_back_blog(blogs, author, publisher, monkeypatch):
    async def broken_update(self, user):
        raise RuntimeError("write failed")

    monkeypatch.setattr(SQLAlchemyUserRepository, "update", broken_update)

    with pytest.raises(RuntimeError):
        await blogs.create_blog(new_blog(author.id))

    monkeypatch.undo()
    _, total = await blogs.list_blogs()
    assert total == 0
    assert publisher.events == []


async def test_create_with_unknown_author(blogs, publisher):
    with pytest.raises(UserNotFoundException):
        await blogs.create_blog(new_blog("f" * 32))
    assert publisher.events == []


async def test_create_with_bad_image_url(blogs, author):
    with pytest.raises(DomainValidationException) as exc:
        await blogs.create_blog(new_blog(author.id, image="https://example.com/page.html"))
    assert "image URL" in exc.value.message


async def test_invalid_ids_rejected_before_lookup(blogs, uow_factory):
    calls = []

    def counting_factory(**kw):
        calls.append(kw)
        return uow_factory(**kw)

    service = BlogApplicationService(counting_factory)
    for op in (service.get_blog, service.delete_blog):
        with pytest.raises(InvalidIdentifierException):
            await op("xyz")
    with pytest.raises(InvalidIdentifierException):
        await service.update_blog("xyz", BlogUpdateDTO(title="New title", description="Long enough body"))
    with pytest.raises(InvalidIdentifierException):
        await service.list_by_user("123")
    assert calls == []


async def test_update_keeps_image_when_omitted(blogs, author, publisher):
    blog = await blogs.create_blog(new_blog(author.id))
    publisher.events.clear()

    updated = await blogs.update_blog(
        blog.id, BlogUpdateDTO(title="Oolong notes", description="Rolled leaves open slowly."),
    )

    assert updated.title == "Oolong notes"
    assert updated.image == IMAGE
    event = publisher.events[0]
    assert event.kind == EventKind.BLOG_UPDATED
    assert event.payload["message"] == 'Blog "Oolong notes" has been updated'
    assert event.payload["blog"]["title"] == "Oolong notes"


async def test_update_missing_blog(blogs):
    with pytest.raises(BlogNotFoundException):
        await blogs.update_blog("a" * 32, BlogUpdateDTO(title="New title", description="Long enough body"))


async def test_delete_decrements_count_and_sends_id_only(blogs, users, author, publisher):
    blog = await blogs.create_blog(new_blog(author.id))
    publisher.events.clear()

    assert await blogs.delete_blog(blog.id) == blog.id

    assert (await users.get_user(author.id)).blog_count == 0
    event = publisher.events[0]
    assert event.kind == EventKind.BLOG_DELETED
    assert event.payload == {"blogId": blog.id, "message": 'Blog "Green tea notes" has been deleted'}
    with pytest.raises(BlogNotFoundException):
        await blogs.get_blog(blog.id)


async def test_get_blog_counts_views(blogs, author):
    blog = await blogs.create_blog(new_blog(author.id))
    await blogs.get_blog(blog.id)
    viewed = await blogs.get_blog(blog.id)
    assert viewed.views == 2
    assert viewed.last_viewed is not None


async def test_list_newest_first_and_by_user(blogs, users, author):
    other = await users.register_user(UserSignupDTO(name="Bob", email="bob@example.com", password="secret1"))
    first = await blogs.create_blog(new_blog(author.id, "First post"))
    second = await blogs.create_blog(new_blog(other.id, "Second post"))

    items, total = await blogs.list_blogs()
    assert total == 2
    assert [b.id for b in items] == [second.id, first.id]

    mine, mine_total = await blogs.list_by_user(author.id)
    assert mine_total == 1
    assert mine[0].id == first.id

    detail = await users.get_user_with_blogs(author.id)
    assert [b.id for b in detail.blogs] == [first.id]


async def test_search_is_case_insensitive(blogs, author):
    await blogs.create_blog(new_blog(author.id, "Green tea notes"))
    await blogs.create_blog(new_blog(author.id, "Coffee ratios", description="Grams of COFFEE per cup of water."))

    items, total = await blogs.search("coffee")
    assert total == 1
    assert items[0].title == "Coffee ratios"

    # LIKE wildcards are matched literally
    _, none = await blogs.search("%")
    assert none == 0


async def test_search_requires_query(blogs):
    with pytest.raises(DomainValidationException) as exc:
        await blogs.search("   ")
    assert exc.value.field == "query"


async def test_stats(blogs, users, author):
    other = await users.register_user(UserSignupDTO(name="Bob", email="bob@example.com", password="secret1"))
    await blogs.create_blog(new_blog(author.id, "One post"))
    await blogs.create_blog(new_blog(author.id, "Two post"))
    await blogs.create_blog(new_blog(other.id, "Bob post"))

    stats = await blogs.get_stats()

    assert stats.total_blogs == 3
    assert stats.total_users == 2
    assert stats.recent_blogs == 3
    assert [(a.name, a.blog_count) for a in stats.top_authors] == [("Ann Lee", 2), ("Bob", 1)]


async def test_user_blogs_collection_is_never_loaded_implicitly(blogs, author, engine):
    await blogs.create_blog(new_blog(author.id))
    async with async_sessionmaker(bind=engine)() as session:
        user = await session.get(UserModel, author.id)
        assert user.blog_count == 1
        with pytest.raises(InvalidRequestError):
            user.blogs
