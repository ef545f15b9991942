"""Infrastructure models package exports."""
from .base import Base, metadata
from .user import UserModel
from .blog import BlogModel

__all__ = [
    "Base",
    "metadata",
    "UserModel",
    "BlogModel",
]
