"""
博客领域实体 - 标题、正文、配图等业务规则
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


STATUSES = ("draft", "published", "archived")
_IMAGE_URL = re.compile(r"^https?://.+\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
WORDS_PER_MINUTE = 200


@dataclass(frozen=True)
class BlogAuthor:
    """博客作者摘要（只读投影，不含密码等敏感字段）"""
    id: str
    name: str
    email: str


@dataclass
class Blog:
    """博客实体"""

    id: Optional[str]
    title: str
    description: str
    image: str
    user_id: str
    views: int = 0
    tags: list[str] = field(default_factory=list)
    status: str = "published"
    author: Optional[BlogAuthor] = None
    last_viewed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.title = (self.title or "").strip()
        self.description = (self.description or "").strip()
        self.image = (self.image or "").strip()
        self.tags = self.normalize_tags(self.tags)
        self.validate()

    @staticmethod
    def normalize_tags(tags: Optional[list[str]]) -> list[str]:
        result: list[str] = []
        for tag in tags or []:
            tag = tag.strip().lower()
            if tag and tag not in result:
                result.append(tag)
        return result

    def validate(self) -> None:
        if len(self.title) < 3:
            raise ValueError("Title must be at least 3 characters long")
        if len(self.title) > 200:
            raise ValueError("Title cannot exceed 200 characters")
        if len(self.description) < 10:
            raise ValueError("Description must be at least 10 characters long")
        if len(self.description) > 5000:
            raise ValueError("Description cannot exceed 5000 characters")
        if not _IMAGE_URL.match(self.image):
            raise ValueError("Please provide a valid image URL")
        if self.status not in STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(STATUSES)}")

    @property
    def reading_time(self) -> int:
        """阅读时长（分钟），至少 1 分钟"""
        words = len(self.description.split())
        return max(1, math.ceil(words / WORDS_PER_MINUTE))

    def revise(
        self,
        *,
        title: str,
        description: str,
        image: Optional[str] = None,
        tags: Optional[list[str]] = None,
        status: Optional[str] = None,
    ) -> None:
        """业务规则：修改博客；未提供配图时保留原图"""
        self.title = title.strip()
        self.description = description.strip()
        if image:
            self.image = image.strip()
        if tags is not None:
            self.tags = self.normalize_tags(tags)
        if status is not None:
            self.status = status
        self.validate()
        self.updated_at = datetime.now(timezone.utc)

    def record_view(self) -> None:
        self.views += 1
        self.last_viewed = datetime.now(timezone.utc)
