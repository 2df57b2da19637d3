from typing import Protocol, Optional, Tuple, List, Dict, Any

from ..notif_engine.types import PostFact


class SocialClient(Protocol):
    """
    Network collaborator used by the notification engine.

    Notes:
    - Error handling: implementations SHOULD raise exceptions on transport or HTTP
      4xx/5xx errors; the engine confines them to its enrichment step.
    - Notifications are returned raw; the engine normalizes and validates them.
    """

    @property
    def platform_name(self) -> str:
        """Short platform identifier, e.g. 'bluesky'."""
        ...

    async def authenticate(self) -> bool:
        """Authenticate the client. Returns False on bad or missing credentials."""
        ...

    async def list_notifications(
        self,
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        Return (raw notifications, next_cursor).

        Each raw notification follows app.bsky.notification.listNotifications:
        {
            'uri': str,
            'cid': str,
            'reason': str,                # like|repost|follow|quote|reply|mention|...
            'reasonSubject': str | None,  # post the interaction is about
            'author': {'did': str, 'handle': str, 'displayName'?: str, 'avatar'?: str},
            'indexedAt': str,             # ISO-8601
            'isRead': bool,
        }
        """
        ...

    async def get_posts(self, uris: List[str]) -> List[PostFact]:
        """
        Return facts for the given post URIs (at most 25). Unavailable posts are
        omitted. SHOULD raise on transport/HTTP errors.
        """
        ...
