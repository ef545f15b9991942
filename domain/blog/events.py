"""
博客领域事件
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class BlogCreated:
    """博客发布事件"""
    blog_id: str
    author_id: str
    author_name: str
    title: str
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class BlogUpdated:
    """博客修改事件"""
    blog_id: str
    author_id: str
    title: str
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class BlogDeleted:
    """博客删除事件（实体已不存在，只保留标识与标题）"""
    blog_id: str
    author_id: str
    title: str
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
