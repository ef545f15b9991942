"""
用户应用服务（application/services）- 编排领域服务、事务与实时事件
"""
from typing import Callable, List, Optional, Tuple

from domain.user.entity import User
from domain.user.service import UserDomainService
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.identifiers import ensure_valid_id
from domain.common.exceptions import UserNotFoundException, DomainValidationException
from application.dto import (
    UserSignupDTO,
    LoginDTO,
    LoginResultDTO,
    UserProfileUpdateDTO,
    UserResponseDTO,
    UserWithBlogsDTO,
)
from application.ports.realtime import ChangeEventPublisher, NullPublisher
from application.services.blog_service import to_blog_dto
from application.services.change_events import to_change_event
from core.logging_config import get_logger


logger = get_logger(__name__)


def to_user_dto(user: User) -> UserResponseDTO:
    return UserResponseDTO(
        id=user.id,
        name=user.name,
        email=user.email,
        initials=user.initials,
        blog_count=user.blog_count,
        profile={
            "bio": user.profile.bio,
            "avatar": user.profile.avatar,
            "website": user.profile.website,
            "location": user.profile.location,
        },
        preferences={
            "email_notifications": user.preferences.email_notifications,
            "theme": user.preferences.theme,
        },
        is_active=user.is_active,
        last_active=user.last_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class UserApplicationService:
    """用户应用服务 - 处理应用层逻辑

    领域事件在工作单元内收集，提交成功后才转换为实时事件发布；
    事务失败时不会发布任何事件。
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

    async def register_user(self, data: UserSignupDTO) -> UserResponseDTO:
        """注册新用户，提交后向所有连接广播"""
        try:
            async with self._uow_factory() as uow:
                domain_service = UserDomainService(uow.user_repository)
                user = await domain_service.register_user(
                    name=data.name,
                    email=str(data.email),
                    password=data.password,
                )
                events = domain_service.get_domain_events()
        except ValueError as e:
            raise DomainValidationException(str(e)) from e

        async with self._uow_factory(readonly=True) as uow:
            user_count = await uow.user_repository.count_all()

        logger.info("user_registered", user_id=user.id, user_count=user_count)
        self._publish(events, user_count=user_count)
        return to_user_dto(user)

    async def login(self, data: LoginDTO) -> LoginResultDTO:
        """用户登录，提交后通知该用户房间"""
        async with self._uow_factory() as uow:
            domain_service = UserDomainService(uow.user_repository)
            user = await domain_service.authenticate_user(
                email=str(data.email),
                password=data.password,
            )
            events = domain_service.get_domain_events()

        logger.info("user_logged_in", user_id=user.id)
        self._publish(events)
        return LoginResultDTO(message="Login Successful!!", user=to_user_dto(user))

    async def get_user(self, user_id: str) -> UserResponseDTO:
        """获取用户信息"""
        ensure_valid_id(user_id, kind="user")
        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_id(user_id)
            if not user:
                raise UserNotFoundException(user_id)
            return to_user_dto(user)

    async def get_user_with_blogs(self, user_id: str, limit: int = 100) -> UserWithBlogsDTO:
        """获取用户信息及其博客（最新在前）"""
        ensure_valid_id(user_id, kind="user")
        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_id(user_id)
            if not user:
                raise UserNotFoundException(user_id)
            blogs = await uow.blog_repository.list_recent(0, limit, user_id=user_id)
            return UserWithBlogsDTO(
                user=to_user_dto(user),
                blogs=[to_blog_dto(b) for b in blogs],
            )

    async def list_users(self, skip: int = 0, limit: int = 100) -> Tuple[List[UserResponseDTO], int]:
        """获取用户列表（带总数）"""
        async with self._uow_factory(readonly=True) as uow:
            users = await uow.user_repository.get_all(skip, limit)
            total = await uow.user_repository.count_all()
            return [to_user_dto(user) for user in users], int(total)

    async def update_profile(self, user_id: str, data: UserProfileUpdateDTO) -> UserResponseDTO:
        """更新用户资料，提交后通知该用户房间"""
        ensure_valid_id(user_id, kind="user")
        try:
            async with self._uow_factory() as uow:
                domain_service = UserDomainService(uow.user_repository)
                user = await domain_service.update_profile(user_id, **data.changes())
                events = domain_service.get_domain_events()
        except ValueError as e:
            raise DomainValidationException(str(e)) from e

        dto = to_user_dto(user)
        logger.info("user_profile_updated", user_id=user_id)
        self._publish(events, user=dto.model_dump())
        return dto
