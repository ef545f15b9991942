"""
博客API路由 - FastAPI表现层
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from application.services.blog_service import BlogApplicationService
from application.services.user_service import UserApplicationService
from core.response import success_response, paginated_response, Response as ApiResponse, PaginatedData
from application.dto import (
    BlogCreateDTO,
    BlogUpdateDTO,
    BlogResponseDTO,
    BlogStatsDTO,
    PaginationParams,
    UserBlogsPageDTO,
)
from api.dependencies import get_blog_service, get_user_service

router = APIRouter(
    prefix="/blogs",
    tags=["博客"]
)


@router.get(
    "/",
    summary="获取博客列表",
    response_model=ApiResponse[PaginatedData[BlogResponseDTO]],
)
async def list_blogs(
    params: PaginationParams = Depends(),
    service: BlogApplicationService = Depends(get_blog_service),
):
    """博客列表（分页，最新在前）"""
    blogs, total = await service.list_blogs(params.skip, params.limit)
    return paginated_response(
        items=blogs,
        total=total,
        page=params.page,
        size=params.limit,
        message="Blogs fetched successfully",
    )


@router.get(
    "/search",
    summary="搜索博客",
    response_model=ApiResponse[PaginatedData[BlogResponseDTO]],
)
async def search_blogs(
    query: Optional[str] = Query(None, description="标题或正文关键字（不区分大小写）"),
    params: PaginationParams = Depends(),
    service: BlogApplicationService = Depends(get_blog_service),
):
    blogs, total = await service.search(query or "", params.skip, params.limit)
    return paginated_response(
        items=blogs,
        total=total,
        page=params.page,
        size=params.limit,
        message="Search completed",
    )


@router.get("/stats", summary="博客统计", response_model=ApiResponse[BlogStatsDTO])
async def blog_stats(service: BlogApplicationService = Depends(get_blog_service)):
    """总数、用户数、最近24小时新增、发文最多的5位作者"""
    stats = await service.get_stats()
    return success_response(data=stats, message="Stats fetched successfully")


@router.get("/user/{user_id}", summary="获取用户的博客", response_model=ApiResponse[UserBlogsPageDTO])
async def list_user_blogs(
    user_id: str,
    params: PaginationParams = Depends(),
    service: BlogApplicationService = Depends(get_blog_service),
    users: UserApplicationService = Depends(get_user_service),
):
    user = await users.get_user(user_id)
    blogs, total = await service.list_by_user(user_id, params.skip, params.limit)
    page = paginated_response(items=blogs, total=total, page=params.page, size=params.limit)
    return success_response(
        data=UserBlogsPageDTO(user=user, blogs=page.data.model_dump()),
        message="User blogs fetched successfully",
    )


@router.get("/{blog_id}", summary="获取博客详情", response_model=ApiResponse[BlogResponseDTO])
async def get_blog(
    blog_id: str,
    service: BlogApplicationService = Depends(get_blog_service),
):
    """每次读取浏览量 +1"""
    blog = await service.get_blog(blog_id)
    return success_response(data=blog, message="Blog fetched successfully")


@router.post(
    "/",
    summary="发布博客",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[BlogResponseDTO],
)
async def add_blog(
    blog_data: BlogCreateDTO,
    service: BlogApplicationService = Depends(get_blog_service),
):
    """
    发布博客

    博客写入与作者博客计数在同一事务内完成；提交后向 `blogs-room`
    与作者房间推送 `new-blog`。
    """
    blog = await service.create_blog(blog_data)
    return success_response(data=blog, message="Blog created successfully")


@router.put("/{blog_id}", summary="修改博客", response_model=ApiResponse[BlogResponseDTO])
async def update_blog(
    blog_id: str,
    blog_data: BlogUpdateDTO,
    service: BlogApplicationService = Depends(get_blog_service),
):
    blog = await service.update_blog(blog_id, blog_data)
    return success_response(data=blog, message="Blog updated successfully")


@router.delete("/{blog_id}", summary="删除博客", response_model=ApiResponse[dict])
async def delete_blog(
    blog_id: str,
    service: BlogApplicationService = Depends(get_blog_service),
):
    deleted_id = await service.delete_blog(blog_id)
    return success_response(data={"blogId": deleted_id}, message="Successfully deleted")
