"""BLOGGY client: REST API client and realtime socket session."""
from .api import BloggyAPIClient
from .feed import RealtimeBlogFeed
from .session import SessionState, SocketSession
from .typing_indicator import TypingIndicator, TypingTracker

__all__ = [
    "BloggyAPIClient",
    "RealtimeBlogFeed",
    "SessionState",
    "SocketSession",
    "TypingIndicator",
    "TypingTracker",
]
