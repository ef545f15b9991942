"""
用户仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from domain.common.identifiers import new_id
from domain.user.entity import User, UserProfile, UserPreferences
from domain.user.repository import UserRepository
from infrastructure.models.user import UserModel
from core.logging_config import get_logger
from domain.common.exceptions import (
    UserAlreadyExistsException,
    UserNotFoundException,
)


logger = get_logger(__name__)


class SQLAlchemyUserRepository(UserRepository):
    """用户仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: UserModel) -> User:
        """将数据库模型转换为领域实体"""
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            hashed_password=model.hashed_password,
            profile=UserProfile(
                bio=model.bio,
                avatar=model.avatar,
                website=model.website,
                location=model.location,
            ),
            preferences=UserPreferences(
                email_notifications=model.email_notifications,
                theme=model.theme,
            ),
            blog_count=model.blog_count or 0,
            is_active=model.is_active,
            last_active=model.last_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: UserModel, entity: User) -> None:
        model.name = entity.name
        model.email = entity.email
        model.hashed_password = entity.hashed_password
        model.bio = entity.profile.bio
        model.avatar = entity.profile.avatar
        model.website = entity.profile.website
        model.location = entity.profile.location
        model.email_notifications = entity.preferences.email_notifications
        model.theme = entity.preferences.theme
        model.blog_count = entity.blog_count
        model.is_active = entity.is_active
        model.last_active = entity.last_active
        if entity.created_at is not None:
            model.created_at = entity.created_at
        if entity.updated_at is not None:
            model.updated_at = entity.updated_at

    async def _get_model(self, user_id: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user: User) -> User:
        """创建用户"""
        db_user = UserModel(id=user.id or new_id())
        self._apply(db_user, user)
        self.session.add(db_user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # 事务整体由 UoW 回滚，这里只负责把唯一约束冲突翻译成业务异常
            if "email" in str(e).lower():
                logger.warning("create_user_conflict", field="email", email=user.email)
                raise UserAlreadyExistsException(user.email) from e
            raise
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """根据ID获取用户"""
        db_user = await self._get_model(user_id)
        return self._to_entity(db_user) if db_user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        """根据邮箱获取用户"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[User]:
        """获取用户列表"""
        # 按创建时间倒序，再按ID倒序，确保分页稳定
        query = (
            select(UserModel)
            .order_by(UserModel.created_at.desc(), UserModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(db_user) for db_user in result.scalars().all()]

    async def update(self, user: User) -> User:
        """更新用户"""
        db_user = await self._get_model(user.id)
        if not db_user:
            raise UserNotFoundException(str(user.id))

        self._apply(db_user, user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            if "email" in str(e).lower():
                logger.warning("update_user_conflict", field="email", user_id=user.id, email=user.email)
                raise UserAlreadyExistsException(user.email) from e
            raise
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def exists_by_email(self, email: str) -> bool:
        """检查邮箱是否存在"""
        result = await self.session.execute(
            select(func.count()).select_from(UserModel)
            .where(UserModel.email == email)
        )
        return (result.scalar() or 0) > 0

    async def count_all(self) -> int:
        """统计用户数量"""
        result = await self.session.execute(select(func.count()).select_from(UserModel))
        return int(result.scalar() or 0)
