"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, EmailStr, Field, field_validator, model_serializer, ConfigDict
from typing import Optional, Literal, List
from datetime import datetime, timezone
from core.config import settings
from core.response import PaginatedData


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


def _strip_required(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# -------------------- 用户 --------------------
class UserSignupDTO(DTOBase):
    """注册DTO"""
    name: str = Field(..., min_length=2, max_length=50, description="用户名，2-50个字符")
    email: EmailStr = Field(..., description="邮箱地址")
    password: str = Field(..., min_length=6, description="密码，至少6位")

    @field_validator("name")
    def validate_name(cls, v):
        return _strip_required(v)


class LoginDTO(DTOBase):
    """登录DTO"""
    email: EmailStr = Field(..., description="邮箱")
    password: str = Field(..., min_length=1, description="密码")


class UserProfileUpdateDTO(DTOBase):
    """资料更新DTO（仅更新提供的字段）"""
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = Field(None, max_length=100)
    email_notifications: Optional[bool] = None
    theme: Optional[Literal["light", "dark", "auto"]] = None

    def changes(self) -> dict:
        """只返回请求里实际提供的字段"""
        return {k: v for k, v in self.__dict__.items() if v is not None}


class UserProfileDTO(DTOBase):
    bio: Optional[str] = None
    avatar: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None


class UserPreferencesDTO(DTOBase):
    email_notifications: bool = True
    theme: str = "light"


class UserResponseDTO(DTOBase):
    """用户响应DTO（不含密码）"""
    id: str
    name: str
    email: str
    initials: str
    blog_count: int = 0
    profile: UserProfileDTO = Field(default_factory=UserProfileDTO)
    preferences: UserPreferencesDTO = Field(default_factory=UserPreferencesDTO)
    is_active: bool = True
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResultDTO(DTOBase):
    """登录结果"""
    message: str
    user: UserResponseDTO


# -------------------- 博客 --------------------
class BlogAuthorDTO(DTOBase):
    id: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class BlogCreateDTO(DTOBase):
    """发布博客DTO"""
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    image: str = Field(..., description="配图URL")
    user: str = Field(..., description="作者ID")
    tags: List[str] = Field(default_factory=list)
    status: Literal["draft", "published", "archived"] = "published"

    @field_validator("title", "description", "image", "user")
    def strip_fields(cls, v):
        return _strip_required(v)


class BlogUpdateDTO(DTOBase):
    """修改博客DTO（未提供配图时保留原图）"""
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    image: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[Literal["draft", "published", "archived"]] = None

    @field_validator("title", "description")
    def strip_fields(cls, v):
        return _strip_required(v)


class BlogResponseDTO(DTOBase):
    """博客响应DTO（作者已填充）"""
    id: str
    title: str
    description: str
    image: str
    user_id: str
    user: Optional[BlogAuthorDTO] = None
    views: int = 0
    tags: List[str] = Field(default_factory=list)
    status: str = "published"
    reading_time: int = 1
    last_viewed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserWithBlogsDTO(DTOBase):
    """用户详情（附博客列表）"""
    user: UserResponseDTO
    blogs: List[BlogResponseDTO] = Field(default_factory=list)


class TopAuthorDTO(DTOBase):
    id: str
    name: str
    blog_count: int


class BlogStatsDTO(DTOBase):
    """博客统计"""
    total_blogs: int
    total_users: int
    recent_blogs: int
    top_authors: List[TopAuthorDTO] = Field(default_factory=list)


# -------------------- 通用 --------------------
class PaginationParams(DTOBase):
    """分页参数（页码/每页大小），自动派生 skip/limit"""
    page: int = Field(1, ge=1, description="页码，从1开始")
    size: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="每页大小",
    )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size


class UserBlogsPageDTO(DTOBase):
    """用户 + 分页博客"""
    user: UserResponseDTO
    blogs: PaginatedData[BlogResponseDTO]
