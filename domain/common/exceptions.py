"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class UserNotFoundException(BusinessException):
    def __init__(self, user_id: Optional[str] = None):
        details = {"user_id": user_id} if user_id else None
        super().__init__(
            code=BusinessCode.USER_NOT_FOUND,
            message="User not found",
            error_type="UserNotFound",
            details=details,
        )


class UserAlreadyExistsException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=BusinessCode.USER_ALREADY_EXISTS,
            message="User already existed!! Login Instead",
            error_type="UserAlreadyExists",
            details={"email": email},
            field="email",
        )


class InvalidCredentialsException(BusinessException):
    """邮箱不存在或密码错误。

    两种情况返回不同文案，但使用同一个业务码，避免上层区分处理。
    """

    def __init__(self, message: str = "Incorrect Password"):
        super().__init__(
            code=BusinessCode.PASSWORD_ERROR,
            message=message,
            error_type="InvalidCredentials",
        )


class UserInactiveException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message="User account is inactive",
            error_type="UserInactive",
        )


class BlogNotFoundException(BusinessException):
    def __init__(self, blog_id: Optional[str] = None):
        details = {"blog_id": blog_id} if blog_id else None
        super().__init__(
            code=BusinessCode.BLOG_NOT_FOUND,
            message="Blog not found",
            error_type="BlogNotFound",
            details=details,
        )


class InvalidIdentifierException(BusinessException):
    def __init__(self, value: str, *, kind: str = "blog"):
        super().__init__(
            code=BusinessCode.INVALID_IDENTIFIER,
            message=f"Invalid {kind} ID format",
            error_type="InvalidIdentifier",
            details={"value": value},
            field=f"{kind}_id",
        )


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )
