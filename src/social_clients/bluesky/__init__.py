from .auth import Session
from .client import BlueskyClient

__all__ = ["BlueskyClient", "Session"]
