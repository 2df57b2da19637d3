"""Bluesky client implementing the SocialClient protocol."""

from typing import Optional

import httpx

from .http import HTTPMixin
from .auth import AuthMixin
from .notifications import NotificationsMixin


class BlueskyClient(HTTPMixin, AuthMixin, NotificationsMixin):
    """
    Bluesky client for reading notifications and the posts they refer to.
    """

    @property
    def platform_name(self) -> str:
        """Platform identifier for Bluesky."""
        return "bluesky"

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        # Initialize all mixins
        HTTPMixin.__init__(self, base_url=base_url, transport=transport)
        AuthMixin.__init__(self, username=username, password=password)
        # NotificationsMixin doesn't have __init__
