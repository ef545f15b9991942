"""
用户数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class UserModel(Base):
    """
    用户数据库模型

    所有业务规则都在 domain.user.entity.User 中
    """
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_created_at", "created_at"),
    )

    id = Column(String(32), primary_key=True, comment="主键（32位十六进制）")

    name = Column(String(50), nullable=False, comment="用户名")
    email = Column(String(255), unique=True, index=True, nullable=False, comment="邮箱（小写）")
    hashed_password = Column(String(255), nullable=False, comment="密码哈希")

    # 资料
    bio = Column(String(500), nullable=True, comment="简介")
    avatar = Column(String(500), nullable=True, comment="头像URL")
    website = Column(String(500), nullable=True, comment="个人网站")
    location = Column(String(100), nullable=True, comment="所在地")

    # 偏好
    email_notifications = Column(Boolean, default=True, nullable=False, comment="是否接收邮件通知")
    theme = Column(String(8), default="light", server_default=text("'light'"), nullable=False, comment="主题")

    # 作者名下博客数量，与 blogs 表在同一事务内维护
    blog_count = Column(Integer, default=0, server_default=text("0"), nullable=False, comment="博客数量")

    is_active = Column(Boolean, default=True, nullable=False, comment="是否激活")
    last_active = Column(DateTime(timezone=True), nullable=True, comment="最近活跃时间")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    blogs = relationship("BlogModel", back_populates="author", lazy="raise")

    def __repr__(self):
        return f"<UserModel(id={self.id}, name='{self.name}', email='{self.email}')>"
