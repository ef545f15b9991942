"""
博客仓储接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Tuple

from .entity import Blog


class BlogRepository(ABC):
    """博客仓储抽象接口"""

    @abstractmethod
    async def create(self, blog: Blog) -> Blog:
        """创建博客"""
        pass

    @abstractmethod
    async def get_by_id(self, blog_id: str) -> Optional[Blog]:
        """根据ID获取博客（包含作者摘要）"""
        pass

    @abstractmethod
    async def update(self, blog: Blog) -> Blog:
        """更新博客"""
        pass

    @abstractmethod
    async def delete(self, blog_id: str) -> bool:
        """删除博客"""
        pass

    @abstractmethod
    async def list_recent(self, skip: int = 0, limit: int = 10,
                          user_id: Optional[str] = None) -> List[Blog]:
        """按创建时间倒序列出博客，可按作者过滤"""
        pass

    @abstractmethod
    async def search(self, query: str, skip: int = 0, limit: int = 10) -> List[Blog]:
        """标题或正文包含关键字（忽略大小写）"""
        pass

    @abstractmethod
    async def count(self, *, user_id: Optional[str] = None,
                    query: Optional[str] = None,
                    created_since: Optional[datetime] = None) -> int:
        """按条件统计博客数量"""
        pass

    @abstractmethod
    async def top_authors(self, limit: int = 5) -> List[Tuple[str, str, int]]:
        """发文最多的作者：(user_id, name, blog_count)"""
        pass
