"""BLOGGY REST 客户端"""
from typing import Any, Dict, List, Optional

import httpx

from core.config import settings
from client.http import BaseAPIClient


class BloggyAPIClient(BaseAPIClient):
    """/api/v1 下用户与博客接口的薄封装；返回统一响应体中的 data"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        super().__init__(
            base_url or settings.client.base_url,
            timeout=timeout or settings.client.timeout,
            transport=transport,
            **kwargs,
        )

    # -------------------- users --------------------
    async def signup(self, name: str, email: str, password: str) -> Dict[str, Any]:
        resp = await self.post("/users/signup", json_data={"name": name, "email": email, "password": password})
        return resp.payload

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        resp = await self.post("/users/login", json_data={"email": email, "password": password})
        return resp.payload

    async def list_users(self, page: int = 1, size: int = 10) -> Dict[str, Any]:
        resp = await self.get("/users/", params={"page": page, "size": size})
        return resp.payload

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        resp = await self.get(f"/users/{user_id}")
        return resp.payload

    async def update_profile(self, user_id: str, **changes: Any) -> Dict[str, Any]:
        body = {k: v for k, v in changes.items() if v is not None}
        resp = await self.put(f"/users/{user_id}", json_data=body)
        return resp.payload

    # -------------------- blogs --------------------
    async def list_blogs(self, page: int = 1, size: int = 10) -> Dict[str, Any]:
        resp = await self.get("/blogs/", params={"page": page, "size": size})
        return resp.payload

    async def search_blogs(self, query: str, page: int = 1, size: int = 10) -> Dict[str, Any]:
        resp = await self.get("/blogs/search", params={"query": query, "page": page, "size": size})
        return resp.payload

    async def blog_stats(self) -> Dict[str, Any]:
        resp = await self.get("/blogs/stats")
        return resp.payload

    async def get_blog(self, blog_id: str) -> Dict[str, Any]:
        resp = await self.get(f"/blogs/{blog_id}")
        return resp.payload

    async def add_blog(
        self,
        *,
        title: str,
        description: str,
        image: str,
        user: str,
        tags: Optional[List[str]] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"title": title, "description": description, "image": image, "user": user}
        if tags is not None:
            body["tags"] = tags
        if status is not None:
            body["status"] = status
        resp = await self.post("/blogs/", json_data=body)
        return resp.payload

    async def update_blog(self, blog_id: str, *, title: str, description: str,
                          image: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"title": title, "description": description}
        if image:
            body["image"] = image
        resp = await self.put(f"/blogs/{blog_id}", json_data=body)
        return resp.payload

    async def delete_blog(self, blog_id: str) -> Dict[str, Any]:
        resp = await self.delete(f"/blogs/{blog_id}")
        return resp.payload

    async def blogs_by_user(self, user_id: str, page: int = 1, size: int = 10) -> Dict[str, Any]:
        resp = await self.get(f"/blogs/user/{user_id}", params={"page": page, "size": size})
        return resp.payload
