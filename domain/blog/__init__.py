"""Blog domain exports."""
from .entity import Blog, BlogAuthor
from .repository import BlogRepository

__all__ = ["Blog", "BlogAuthor", "BlogRepository"]
