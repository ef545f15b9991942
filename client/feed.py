"""Live blog list mirror: REST page load + socket updates."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from application.ports.realtime import EventKind
from client.api import BloggyAPIClient
from client.session import SocketSession
from client.typing_indicator import TypingTracker, TypingUser


class RealtimeBlogFeed:
    """新博客插到最前，修改就地替换，删除按 ID 移除。

    mount/unmount 可以反复调用，不会重复注册监听器。
    """

    def __init__(
        self,
        api: BloggyAPIClient,
        session: SocketSession,
        *,
        page_size: int = 10,
        tracker: Optional[TypingTracker] = None,
    ) -> None:
        self._api = api
        self._session = session
        self.page_size = page_size
        self.tracker = tracker or TypingTracker()
        self.blogs: List[Dict[str, Any]] = []
        self.total = 0
        self.page = 0
        self.has_more = False
        self.last_message: Optional[str] = None
        self.mounted = False

    # -------------------- lifecycle --------------------
    def mount(self) -> None:
        if self.mounted:
            return
        self._session.on(EventKind.NEW_BLOG.value, self._on_new_blog)
        self._session.on(EventKind.BLOG_UPDATED.value, self._on_blog_updated)
        self._session.on(EventKind.BLOG_DELETED.value, self._on_blog_deleted)
        self.tracker.attach(self._session)
        self.mounted = True

    def unmount(self) -> None:
        if not self.mounted:
            return
        self._session.off(EventKind.NEW_BLOG.value, self._on_new_blog)
        self._session.off(EventKind.BLOG_UPDATED.value, self._on_blog_updated)
        self._session.off(EventKind.BLOG_DELETED.value, self._on_blog_deleted)
        self.tracker.detach(self._session)
        self.mounted = False

    # -------------------- REST --------------------
    async def load(self, page: int = 1) -> List[Dict[str, Any]]:
        data = await self._api.list_blogs(page=page, size=self.page_size)
        items = list(data.get("items") or [])
        if page == 1:
            self.blogs = items
        else:
            known = {b.get("id") for b in self.blogs}
            self.blogs.extend(b for b in items if b.get("id") not in known)
        self.total = int(data.get("total") or 0)
        self.page = page
        self.has_more = bool(data.get("has_next"))
        return self.blogs

    async def load_more(self) -> List[Dict[str, Any]]:
        if not self.has_more:
            return self.blogs
        return await self.load(self.page + 1)

    # -------------------- socket handlers --------------------
    def _on_new_blog(self, data: Any) -> None:
        blog = (data or {}).get("blog") if isinstance(data, dict) else None
        if not blog or any(b.get("id") == blog.get("id") for b in self.blogs):
            return
        self.blogs.insert(0, blog)
        self.total += 1
        self.last_message = data.get("message")

    def _on_blog_updated(self, data: Any) -> None:
        blog = data.get("blog") if isinstance(data, dict) else None
        if not blog:
            return
        for i, existing in enumerate(self.blogs):
            if existing.get("id") == blog.get("id"):
                self.blogs[i] = blog
                break
        self.last_message = data.get("message")

    def _on_blog_deleted(self, data: Any) -> None:
        blog_id = data.get("blogId") if isinstance(data, dict) else None
        if not blog_id:
            return
        before = len(self.blogs)
        self.blogs = [b for b in self.blogs if b.get("id") != blog_id]
        if len(self.blogs) < before:
            self.total = max(0, self.total - 1)
        self.last_message = data.get("message")

    @property
    def typing_users(self) -> List[TypingUser]:
        return self.tracker.active()
