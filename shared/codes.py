"""
Shared business codes used across layers (Domain/Core/API).

Single source of truth so the domain exceptions, the global exception
handlers and the API envelope never drift apart.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """业务状态码定义（单一来源）"""

    # 成功
    SUCCESS = 0

    # 参数错误 (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_VALIDATION_ERROR = 10003
    INVALID_IDENTIFIER = 10004

    # 业务错误 (2xxxx)
    BUSINESS_ERROR = 20000
    USER_NOT_FOUND = 20001
    USER_ALREADY_EXISTS = 20002
    PASSWORD_ERROR = 20003
    NOT_FOUND = 20006  # 资源未找到（通用）
    BLOG_NOT_FOUND = 20007

    # 权限错误 (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # 系统错误 (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    SERVICE_UNAVAILABLE = 40003


__all__ = ["BusinessCode"]
