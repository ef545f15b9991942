"""实体标识符：32 位小写十六进制字符串。"""
from __future__ import annotations

import re
import uuid

from domain.common.exceptions import InvalidIdentifierException


_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: object) -> bool:
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))


def ensure_valid_id(value: str, *, kind: str = "blog") -> str:
    """校验标识符格式，不合法时在访问存储之前直接拒绝。"""
    if not is_valid_id(value):
        raise InvalidIdentifierException(str(value), kind=kind)
    return value
