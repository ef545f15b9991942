"""
博客仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from domain.blog.entity import Blog, BlogAuthor
from domain.blog.repository import BlogRepository
from domain.common.identifiers import new_id
from domain.common.exceptions import BlogNotFoundException
from infrastructure.models.blog import BlogModel
from infrastructure.models.user import UserModel


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SQLAlchemyBlogRepository(BlogRepository):
    """博客仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: BlogModel) -> Blog:
        author = None
        if model.author is not None:
            author = BlogAuthor(id=model.author.id, name=model.author.name, email=model.author.email)
        return Blog(
            id=model.id,
            title=model.title,
            description=model.description,
            image=model.image,
            user_id=model.user_id,
            views=model.views or 0,
            tags=list(model.tags or []),
            status=model.status,
            author=author,
            last_viewed=model.last_viewed,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: BlogModel, entity: Blog) -> None:
        model.title = entity.title
        model.description = entity.description
        model.image = entity.image
        model.user_id = entity.user_id
        model.views = entity.views
        model.tags = list(entity.tags)
        model.status = entity.status
        model.last_viewed = entity.last_viewed
        if entity.created_at is not None:
            model.created_at = entity.created_at
        if entity.updated_at is not None:
            model.updated_at = entity.updated_at

    async def _get_model(self, blog_id: str) -> Optional[BlogModel]:
        # populate_existing：同一会话内重复读取时带回最新的作者信息
        result = await self.session.execute(
            select(BlogModel)
            .where(BlogModel.id == blog_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _filtered(self, stmt, *, user_id: Optional[str] = None, query: Optional[str] = None,
                  created_since: Optional[datetime] = None):
        if user_id is not None:
            stmt = stmt.where(BlogModel.user_id == user_id)
        if query:
            pattern = _like_pattern(query)
            stmt = stmt.where(or_(
                BlogModel.title.ilike(pattern, escape="\\"),
                BlogModel.description.ilike(pattern, escape="\\"),
            ))
        if created_since is not None:
            stmt = stmt.where(BlogModel.created_at >= created_since)
        return stmt

    async def create(self, blog: Blog) -> Blog:
        db_blog = BlogModel(id=blog.id or new_id())
        self._apply(db_blog, blog)
        self.session.add(db_blog)
        await self.session.flush()
        created = await self._get_model(db_blog.id)
        return self._to_entity(created)

    async def get_by_id(self, blog_id: str) -> Optional[Blog]:
        db_blog = await self._get_model(blog_id)
        return self._to_entity(db_blog) if db_blog else None

    async def update(self, blog: Blog) -> Blog:
        db_blog = await self._get_model(blog.id)
        if not db_blog:
            raise BlogNotFoundException(blog.id)
        self._apply(db_blog, blog)
        await self.session.flush()
        refreshed = await self._get_model(blog.id)
        return self._to_entity(refreshed)

    async def delete(self, blog_id: str) -> bool:
        result = await self.session.execute(delete(BlogModel).where(BlogModel.id == blog_id))
        await self.session.flush()
        return (result.rowcount or 0) > 0

    async def list_recent(self, skip: int = 0, limit: int = 10,
                          user_id: Optional[str] = None) -> List[Blog]:
        stmt = self._filtered(select(BlogModel), user_id=user_id)
        stmt = stmt.order_by(BlogModel.created_at.desc(), BlogModel.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def search(self, query: str, skip: int = 0, limit: int = 10) -> List[Blog]:
        stmt = self._filtered(select(BlogModel), query=query)
        stmt = stmt.order_by(BlogModel.created_at.desc(), BlogModel.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count(self, *, user_id: Optional[str] = None,
                    query: Optional[str] = None,
                    created_since: Optional[datetime] = None) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(BlogModel),
            user_id=user_id, query=query, created_since=created_since,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def top_authors(self, limit: int = 5) -> List[Tuple[str, str, int]]:
        blog_count = func.count(BlogModel.id).label("blog_count")
        stmt = (
            select(UserModel.id, UserModel.name, blog_count)
            .join(BlogModel, BlogModel.user_id == UserModel.id)
            .group_by(UserModel.id, UserModel.name)
            .order_by(blog_count.desc(), UserModel.name.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(row.id, row.name, int(row.blog_count)) for row in result.all()]
