from .base import SocialClient
from .bluesky import BlueskyClient

__all__ = [
    "SocialClient",
    "BlueskyClient",
]
