"""
用户领域服务 - 处理注册、登录与资料更新
"""
from typing import Optional, List
from datetime import datetime, timezone
import hashlib
import hmac
import secrets

from .entity import User, UserProfile, UserPreferences
from .repository import UserRepository
from .events import UserRegistered, UserLoggedIn, UserProfileUpdated
from domain.common.exceptions import (
    UserAlreadyExistsException,
    UserNotFoundException,
    InvalidCredentialsException,
    UserInactiveException,
)


class PasswordService:
    """密码服务 - 处理密码相关的业务逻辑"""

    ITERATIONS = 100000
    MIN_LENGTH = 6

    @classmethod
    def hash_password(cls, password: str) -> str:
        """密码哈希（pbkdf2-sha256，随机盐）"""
        salt = secrets.token_hex(16)
        pwd_hash = hashlib.pbkdf2_hmac('sha256',
                                       password.encode('utf-8'),
                                       salt.encode('utf-8'),
                                       cls.ITERATIONS)
        return f"{salt}${pwd_hash.hex()}"

    @classmethod
    def verify_password(cls, plain_password: str, hashed_password: str) -> bool:
        """验证密码"""
        try:
            salt, pwd_hash = hashed_password.split('$')
        except ValueError:
            return False
        new_hash = hashlib.pbkdf2_hmac('sha256',
                                       plain_password.encode('utf-8'),
                                       salt.encode('utf-8'),
                                       cls.ITERATIONS)
        return hmac.compare_digest(new_hash.hex(), pwd_hash)

    @classmethod
    def validate_password_strength(cls, password: str) -> None:
        """业务规则：密码长度"""
        if len(password or "") < cls.MIN_LENGTH:
            raise ValueError(f"Password must be at least {cls.MIN_LENGTH} characters long")


class UserDomainService:
    """用户领域服务 - 编排复杂的业务流程"""

    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository
        self.password_service = PasswordService()
        self.events: List = []  # 领域事件收集

    async def register_user(self, name: str, email: str, password: str) -> User:
        """用户注册的业务流程"""
        self.password_service.validate_password_strength(password)

        now = datetime.now(timezone.utc)
        user = User(
            id=None,
            name=name,
            email=email,
            hashed_password=self.password_service.hash_password(password),
            profile=UserProfile(),
            preferences=UserPreferences(),
            last_active=now,
            created_at=now,
            updated_at=now,
        )

        # 业务规则：邮箱唯一（实体已完成规范化，用规范化后的邮箱查重）
        if await self.user_repository.exists_by_email(user.email):
            raise UserAlreadyExistsException(user.email)

        created_user = await self.user_repository.create(user)

        self.events.append(UserRegistered(user_id=created_user.id,
                                          name=created_user.name,
                                          email=created_user.email))
        return created_user

    async def authenticate_user(self, email: str, password: str) -> User:
        """用户认证的业务流程"""
        user = await self.user_repository.get_by_email((email or "").strip().lower())
        if not user:
            raise InvalidCredentialsException("Couldn't find an account with this email")

        if not self.password_service.verify_password(password, user.hashed_password):
            raise InvalidCredentialsException()

        if not user.is_active:
            raise UserInactiveException()

        user.record_activity()
        updated = await self.user_repository.update(user)

        self.events.append(UserLoggedIn(user_id=updated.id, name=updated.name))
        return updated

    async def update_profile(self, user_id: str, **changes: Optional[object]) -> User:
        """更新用户资料"""
        user = await self.user_repository.get_by_id(user_id)
        if not user:
            raise UserNotFoundException(user_id)

        changed = user.update_profile(**changes)
        updated = await self.user_repository.update(user)

        self.events.append(UserProfileUpdated(user_id=user_id, updated_fields=changed))
        return updated

    def get_domain_events(self) -> List:
        """获取并清空领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
