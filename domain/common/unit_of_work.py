"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.user.repository import UserRepository
from domain.blog.repository import BlogRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象

    退出上下文时：有异常则整体回滚，否则（非只读且未显式提交时）自动提交。
    只有 ``__aexit__`` 正常返回后，本次写入才算持久化。
    """

    user_repository: UserRepository
    blog_repository: BlogRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.user_repository = None  # type: ignore[assignment]
        self.blog_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """提交事务"""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """回滚事务"""
