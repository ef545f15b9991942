"""
用户领域实体 - 包含核心业务规则
"""
from datetime import datetime, timezone
from typing import Optional
from dataclasses import dataclass, field
import re


THEMES = ("light", "dark", "auto")


@dataclass
class UserProfile:
    """用户资料（值对象）"""
    bio: Optional[str] = None
    avatar: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None

    def validate(self) -> None:
        if self.bio is not None and len(self.bio) > 500:
            raise ValueError("Bio cannot exceed 500 characters")
        if self.location is not None and len(self.location) > 100:
            raise ValueError("Location cannot exceed 100 characters")


@dataclass
class UserPreferences:
    """用户偏好（值对象）"""
    email_notifications: bool = True
    theme: str = "light"

    def validate(self) -> None:
        if self.theme not in THEMES:
            raise ValueError(f"Theme must be one of: {', '.join(THEMES)}")


@dataclass
class User:
    """用户实体 - 领域核心"""

    id: Optional[str]
    name: str
    email: str
    hashed_password: str
    profile: UserProfile = field(default_factory=UserProfile)
    preferences: UserPreferences = field(default_factory=UserPreferences)
    blog_count: int = 0
    is_active: bool = True
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """初始化后的业务规则验证"""
        self.name = (self.name or "").strip()
        self.email = (self.email or "").strip().lower()
        self.validate_name()
        self.validate_email()
        self.profile.validate()
        self.preferences.validate()

    def validate_email(self) -> None:
        """业务规则：邮箱格式验证"""
        if not re.match(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", self.email):
            raise ValueError("Please provide a valid email address")

    def validate_name(self) -> None:
        """业务规则：用户名验证"""
        if len(self.name) < 2:
            raise ValueError("Name must be at least 2 characters long")
        if len(self.name) > 50:
            raise ValueError("Name cannot exceed 50 characters")

    @property
    def initials(self) -> str:
        return "".join(word[0] for word in self.name.split() if word)[:2].upper()

    def update_profile(
        self,
        *,
        name: Optional[str] = None,
        bio: Optional[str] = None,
        avatar: Optional[str] = None,
        website: Optional[str] = None,
        location: Optional[str] = None,
        email_notifications: Optional[bool] = None,
        theme: Optional[str] = None,
    ) -> list[str]:
        """业务规则：更新用户资料，返回实际变更的字段名"""
        changed: list[str] = []
        if name is not None:
            self.name = name.strip()
            self.validate_name()
            changed.append("name")
        for attr, value in (("bio", bio), ("avatar", avatar), ("website", website), ("location", location)):
            if value is not None:
                setattr(self.profile, attr, value.strip())
                changed.append(attr)
        self.profile.validate()
        if email_notifications is not None:
            self.preferences.email_notifications = email_notifications
            changed.append("email_notifications")
        if theme is not None:
            self.preferences.theme = theme
            changed.append("theme")
        self.preferences.validate()
        self.updated_at = datetime.now(timezone.utc)
        return changed

    def attach_blog(self) -> None:
        """业务规则：作者名下新增一篇博客"""
        self.blog_count += 1
        self.updated_at = datetime.now(timezone.utc)

    def detach_blog(self) -> None:
        """业务规则：作者名下移除一篇博客"""
        self.blog_count = max(0, self.blog_count - 1)
        self.updated_at = datetime.now(timezone.utc)

    def record_activity(self) -> None:
        """业务规则：记录最近活跃时间（登录时调用）"""
        self.last_active = datetime.now(timezone.utc)
