"""
博客数据库模型
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, text
from sqlalchemy.orm import relationship

from .base import Base


class BlogModel(Base):
    """ORM mapping for blogs table."""

    __tablename__ = "blogs"
    __table_args__ = (
        Index("ix_blogs_created_at", "created_at"),
        Index("ix_blogs_user_created", "user_id", "created_at"),
    )

    id = Column(String(32), primary_key=True, comment="主键（32位十六进制）")
    title = Column(String(200), nullable=False, comment="标题")
    description = Column(Text, nullable=False, comment="正文")
    image = Column(String(1000), nullable=False, comment="配图URL")
    user_id = Column(
        String(32),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="作者ID",
    )
    views = Column(Integer, default=0, server_default=text("0"), nullable=False, comment="浏览次数")
    tags = Column(JSON, nullable=False, default=list, comment="标签（小写）")
    status = Column(
        String(16),
        nullable=False,
        default="published",
        server_default=text("'published'"),
        comment="状态：draft/published/archived",
    )
    last_viewed = Column(DateTime(timezone=True), nullable=True, comment="最近浏览时间")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间",
    )

    author = relationship("UserModel", back_populates="blogs", lazy="joined")

    def __repr__(self):
        return f"<BlogModel(id={self.id}, title='{self.title}', user_id={self.user_id})>"
