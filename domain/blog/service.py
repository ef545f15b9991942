"""
博客领域服务 - 发布/修改/删除博客，并维护作者名下的博客计数

创建与删除都会同时写博客表与用户表，两次写入必须处于同一个工作单元（事务）内，
由调用方（应用服务）负责提交或回滚。
"""
from datetime import datetime, timezone
from typing import List, Optional

from .entity import Blog
from .events import BlogCreated, BlogUpdated, BlogDeleted
from .repository import BlogRepository
from domain.user.repository import UserRepository
from domain.common.exceptions import UserNotFoundException, BlogNotFoundException


class BlogDomainService:
    """博客领域服务"""

    def __init__(self, blog_repository: BlogRepository, user_repository: UserRepository):
        self.blog_repository = blog_repository
        self.user_repository = user_repository
        self.events: List = []

    async def create_blog(
        self,
        *,
        author_id: str,
        title: str,
        description: str,
        image: str,
        tags: Optional[list[str]] = None,
        status: str = "published",
    ) -> Blog:
        now = datetime.now(timezone.utc)
        # 先构造实体完成字段校验，避免无效请求访问存储
        blog = Blog(
            id=None,
            title=title,
            description=description,
            image=image,
            user_id=author_id,
            tags=tags or [],
            status=status,
            last_viewed=now,
            created_at=now,
            updated_at=now,
        )

        author = await self.user_repository.get_by_id(author_id)
        if not author:
            raise UserNotFoundException(author_id)

        created = await self.blog_repository.create(blog)
        author.attach_blog()
        await self.user_repository.update(author)

        self.events.append(BlogCreated(blog_id=created.id,
                                       author_id=author.id,
                                       author_name=author.name,
                                       title=created.title))
        return created

    async def update_blog(
        self,
        blog_id: str,
        *,
        title: str,
        description: str,
        image: Optional[str] = None,
        tags: Optional[list[str]] = None,
        status: Optional[str] = None,
    ) -> Blog:
        blog = await self.blog_repository.get_by_id(blog_id)
        if not blog:
            raise BlogNotFoundException(blog_id)

        blog.revise(title=title, description=description, image=image, tags=tags, status=status)
        updated = await self.blog_repository.update(blog)

        self.events.append(BlogUpdated(blog_id=updated.id,
                                       author_id=updated.user_id,
                                       title=updated.title))
        return updated

    async def delete_blog(self, blog_id: str) -> Blog:
        blog = await self.blog_repository.get_by_id(blog_id)
        if not blog:
            raise BlogNotFoundException(blog_id)

        author = await self.user_repository.get_by_id(blog.user_id)
        if author:
            author.detach_blog()
            await self.user_repository.update(author)
        await self.blog_repository.delete(blog_id)

        self.events.append(BlogDeleted(blog_id=blog.id,
                                       author_id=blog.user_id,
                                       title=blog.title))
        return blog

    async def record_view(self, blog_id: str) -> Blog:
        blog = await self.blog_repository.get_by_id(blog_id)
        if not blog:
            raise BlogNotFoundException(blog_id)
        blog.record_view()
        return await self.blog_repository.update(blog)

    def get_domain_events(self) -> List:
        """获取并清空领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
