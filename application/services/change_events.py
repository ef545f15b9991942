"""领域事件 -> 实时变更事件（ChangeEvent）的映射

只在工作单元提交之后调用；房间与文案在这里集中定义。
"""
from typing import Any, Optional

from application.ports.realtime import (
    ALL_BLOGS_ROOM,
    ChangeEvent,
    EventKind,
    user_room,
    utc_now_z,
)
from domain.blog.events import BlogCreated, BlogUpdated, BlogDeleted
from domain.user.events import UserRegistered, UserLoggedIn, UserProfileUpdated


def _blog_rooms(author_id: str) -> tuple:
    return (ALL_BLOGS_ROOM, user_room(author_id))


def blog_created(event: BlogCreated, blog: dict) -> ChangeEvent:
    message = f'New blog "{event.title}" published by {event.author_name}'
    return ChangeEvent(
        kind=EventKind.NEW_BLOG,
        payload={"blog": blog, "message": message},
        target_rooms=_blog_rooms(event.author_id),
        message=message,
    )


def blog_updated(event: BlogUpdated, blog: dict) -> ChangeEvent:
    message = f'Blog "{event.title}" has been updated'
    return ChangeEvent(
        kind=EventKind.BLOG_UPDATED,
        payload={"blog": blog, "message": message},
        target_rooms=_blog_rooms(event.author_id),
        message=message,
    )


def blog_deleted(event: BlogDeleted) -> ChangeEvent:
    # 只带 ID，不带正文
    message = f'Blog "{event.title}" has been deleted'
    return ChangeEvent(
        kind=EventKind.BLOG_DELETED,
        payload={"blogId": event.blog_id, "message": message},
        target_rooms=_blog_rooms(event.author_id),
        message=message,
    )


def profile_updated(event: UserProfileUpdated, user: dict) -> ChangeEvent:
    message = "Your profile has been updated"
    return ChangeEvent(
        kind=EventKind.PROFILE_UPDATED,
        payload={"user": user, "message": message, "updatedFields": list(event.updated_fields)},
        target_rooms=(user_room(event.user_id),),
        message=message,
    )


def user_logged_in(event: UserLoggedIn) -> ChangeEvent:
    message = f"Welcome back, {event.name}!"
    return ChangeEvent(
        kind=EventKind.USER_LOGGED_IN,
        payload={"message": message, "timestamp": utc_now_z()},
        target_rooms=(user_room(event.user_id),),
        message=message,
    )


def user_registered(event: UserRegistered, user_count: int) -> ChangeEvent:
    # target_rooms 为空：广播给所有连接（包括未加入任何房间的）
    message = f"{event.name} just joined BLOGGY"
    return ChangeEvent(
        kind=EventKind.NEW_USER_REGISTERED,
        payload={"message": message, "userCount": user_count},
        message=message,
    )


def to_change_event(event: Any, *, blog: Optional[dict] = None, user: Optional[dict] = None,
                    user_count: int = 0) -> Optional[ChangeEvent]:
    if isinstance(event, BlogCreated):
        return blog_created(event, blog or {})
    if isinstance(event, BlogUpdated):
        return blog_updated(event, blog or {})
    if isinstance(event, BlogDeleted):
        return blog_deleted(event)
    if isinstance(event, UserProfileUpdated):
        return profile_updated(event, user or {})
    if isinstance(event, UserLoggedIn):
        return user_logged_in(event)
    if isinstance(event, UserRegistered):
        return user_registered(event, user_count)
    return None
