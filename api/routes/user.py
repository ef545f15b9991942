"""
用户API路由 - FastAPI表现层
"""
from fastapi import APIRouter, Depends, status

from application.services.user_service import UserApplicationService
from core.response import success_response, paginated_response, Response as ApiResponse, PaginatedData
from application.dto import (
    UserSignupDTO,
    LoginDTO,
    LoginResultDTO,
    UserProfileUpdateDTO,
    UserResponseDTO,
    UserWithBlogsDTO,
    PaginationParams,
)
from api.dependencies import get_user_service

router = APIRouter(
    prefix="/users",
    tags=["用户管理"]
)


@router.get(
    "/",
    summary="获取用户列表",
    response_model=ApiResponse[PaginatedData[UserResponseDTO]],
)
async def list_users(
    params: PaginationParams = Depends(),
    service: UserApplicationService = Depends(get_user_service),
):
    """获取用户列表（分页，最新注册在前）"""
    users, total = await service.list_users(params.skip, params.limit)
    return paginated_response(
        items=users,
        total=total,
        page=params.page,
        size=params.limit,
        message="Users fetched successfully",
    )


@router.post(
    "/signup",
    summary="用户注册",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[UserResponseDTO],
)
async def signup(
    user_data: UserSignupDTO,
    service: UserApplicationService = Depends(get_user_service),
):
    """
    注册新用户

    - **name**: 用户名（2-50个字符）
    - **email**: 邮箱地址（唯一，不区分大小写）
    - **password**: 密码（至少6位）

    成功后向所有在线连接广播 `new-user-registered`。
    """
    user = await service.register_user(user_data)
    return success_response(data=user, message="User registered successfully")


@router.post("/login", summary="用户登录", response_model=ApiResponse[LoginResultDTO])
async def login(
    login_data: LoginDTO,
    service: UserApplicationService = Depends(get_user_service),
):
    """邮箱 + 密码登录；成功后通知该用户房间 `user-logged-in`"""
    result = await service.login(login_data)
    return success_response(data=result, message=result.message)


@router.get("/{user_id}", summary="获取用户及其博客", response_model=ApiResponse[UserWithBlogsDTO])
async def get_user(
    user_id: str,
    service: UserApplicationService = Depends(get_user_service),
):
    user = await service.get_user_with_blogs(user_id)
    return success_response(data=user, message="User fetched successfully")


@router.put("/{user_id}", summary="更新用户资料", response_model=ApiResponse[UserResponseDTO])
async def update_user(
    user_id: str,
    update_data: UserProfileUpdateDTO,
    service: UserApplicationService = Depends(get_user_service),
):
    """只更新提供的字段；成功后通知该用户房间 `profile-updated`"""
    user = await service.update_profile(user_id, update_data)
    return success_response(data=user, message="Profile updated successfully")
