"""
博客应用服务 - 编排博客领域服务、工作单元与实时事件
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from domain.blog.entity import Blog
from domain.blog.service import BlogDomainService
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.identifiers import ensure_valid_id
from domain.common.exceptions import DomainValidationException
from application.dto import (
    BlogAuthorDTO,
    BlogCreateDTO,
    BlogUpdateDTO,
    BlogResponseDTO,
    BlogStatsDTO,
    TopAuthorDTO,
)
from application.ports.realtime import ChangeEventPublisher, NullPublisher
from application.services.change_events import to_change_event
from core.logging_config import get_logger


logger = get_logger(__name__)

RECENT_WINDOW = timedelta(hours=24)
TOP_AUTHORS_LIMIT = 5


def to_blog_dto(blog: Blog) -> BlogResponseDTO:
    author = None
    if blog.author is not None:
        author = BlogAuthorDTO(id=blog.author.id, name=blog.author.name, email=blog.author.email)
    return BlogResponseDTO(
        id=blog.id,
        title=blog.title,
        description=blog.description,
        image=blog.image,
        user_id=blog.user_id,
        user=author,
        views=blog.views,
        tags=list(blog.tags),
        status=blog.status,
        reading_time=blog.reading_time,
        last_viewed=blog.last_viewed,
        created_at=blog.created_at,
        updated_at=blog.updated_at,
    )


class BlogApplicationService:
    """博客应用服务

    发布与删除会同时写博客表和作者的博客计数，两者处于同一个工作单元；
    任一步失败整体回滚，且不发布事件。
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        publisher: Optional[ChangeEventPublisher] = None,
    ):
        self._uow_factory = uow_factory
        self._publisher = publisher or NullPublisher()

    def _publish(self, events: list, **context) -> None:
        for event in events:
            change = to_change_event(event, **context)
            if change is not None:
                self._publisher.publish(change)

    # -------------------- 查询 --------------------
    async def list_blogs(self, skip: int = 0, limit: int = 10) -> Tuple[List[BlogResponseDTO], int]:
        """博客列表（最新在前，带总数）"""
        async with self._uow_factory(readonly=True) as uow:
            blogs = await uow.blog_repository.list_recent(skip, limit)
            total = await uow.blog_repository.count()
            return [to_blog_dto(b) for b in blogs], total

    async def list_by_user(self, user_id: str, skip: int = 0,
                           limit: int = 10) -> Tuple[List[BlogResponseDTO], int]:
        ensure_valid_id(user_id, kind="user")
        async with self._uow_factory(readonly=True) as uow:
            blogs = await uow.blog_repository.list_recent(skip, limit, user_id=user_id)
            total = await uow.blog_repository.count(user_id=user_id)
            return [to_blog_dto(b) for b in blogs], total

    async def search(self, query: str, skip: int = 0, limit: int = 10) -> Tuple[List[BlogResponseDTO], int]:
        """标题/正文不区分大小写的子串搜索"""
        query = (query or "").strip()
        if not query:
            raise DomainValidationException("Search query is required", field="query")
        async with self._uow_factory(readonly=True) as uow:
            blogs = await uow.blog_repository.search(query, skip, limit)
            total = await uow.blog_repository.count(query=query)
            return [to_blog_dto(b) for b in blogs], total

    async def get_stats(self) -> BlogStatsDTO:
        since = datetime.now(timezone.utc) - RECENT_WINDOW
        async with self._uow_factory(readonly=True) as uow:
            total_blogs = await uow.blog_repository.count()
            total_users = await uow.user_repository.count_all()
            recent = await uow.blog_repository.count(created_since=since)
            top = await uow.blog_repository.top_authors(TOP_AUTHORS_LIMIT)
        return BlogStatsDTO(
            total_blogs=total_blogs,
            total_users=total_users,
            recent_blogs=recent,
            top_authors=[TopAuthorDTO(id=uid, name=name, blog_count=count) for uid, name, count in top],
        )

    async def get_blog(self, blog_id: str) -> BlogResponseDTO:
        """获取博客详情（浏览量 +1，记录最近浏览时间）"""
        ensure_valid_id(blog_id)
        async with self._uow_factory() as uow:
            domain_service = BlogDomainService(uow.blog_repository, uow.user_repository)
            blog = await domain_service.record_view(blog_id)
        return to_blog_dto(blog)

    # -------------------- 变更 --------------------
    async def create_blog(self, data: BlogCreateDTO) -> BlogResponseDTO:
        ensure_valid_id(data.user, kind="user")
        try:
            async with self._uow_factory() as uow:
                domain_service = BlogDomainService(uow.blog_repository, uow.user_repository)
                blog = await domain_service.create_blog(
                    author_id=data.user,
                    title=data.title,
                    description=data.description,
                    image=data.image,
                    tags=data.tags,
                    status=data.status,
                )
                events = domain_service.get_domain_events()
        except ValueError as e:
            raise DomainValidationException(str(e)) from e

        dto = to_blog_dto(blog)
        logger.info("blog_created", blog_id=blog.id, author_id=blog.user_id)
        self._publish(events, blog=dto.model_dump())
        return dto

    async def update_blog(self, blog_id: str, data: BlogUpdateDTO) -> BlogResponseDTO:
        ensure_valid_id(blog_id)
        try:
            async with self._uow_factory() as uow:
                domain_service = BlogDomainService(uow.blog_repository, uow.user_repository)
                blog = await domain_service.update_blog(
                    blog_id,
                    title=data.title,
                    description=data.description,
                    image=data.image,
                    tags=data.tags,
                    status=data.status,
                )
                events = domain_service.get_domain_events()
        except ValueError as e:
            raise DomainValidationException(str(e)) from e

        dto = to_blog_dto(blog)
        logger.info("blog_updated", blog_id=blog_id)
        self._publish(events, blog=dto.model_dump())
        return dto

    async def delete_blog(self, blog_id: str) -> str:
        ensure_valid_id(blog_id)
        async with self._uow_factory() as uow:
            domain_service = BlogDomainService(uow.blog_repository, uow.user_repository)
            blog = await domain_service.delete_blog(blog_id)
            events = domain_service.get_domain_events()

        logger.info("blog_deleted", blog_id=blog_id, author_id=blog.user_id)
        self._publish(events)
        return blog_id
