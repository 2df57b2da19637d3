"""Notifications and post lookup mixin for Bluesky client."""

import logging
from typing import Optional, List, Dict, Any, Tuple

from ...notif_engine.types import PostFact

logger = logging.getLogger("social_clients.bluesky.notifications")

# app.bsky.feed.getPosts limit
GET_POSTS_MAX_URIS = 25


class NotificationsMixin:
    """Reads notifications and post views from Bluesky."""

    async def list_notifications(
        self,
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        Return one page of raw ``listNotifications`` items and the next cursor.

        Items are passed through unchanged; the engine's normalizer validates them.
        """
        headers = await self._auth_headers()
        params: Dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor

        resp = await self._request(
            "GET",
            "/xrpc/app.bsky.notification.listNotifications",
            headers=headers,
            params=params,
            timeout=30.0,
        )
        payload = resp.json()
        items = payload.get("notifications", []) or []
        next_cursor = payload.get("cursor")
        logger.debug(f"Fetched {len(items)} notification(s), cursor={next_cursor}")
        return items, next_cursor

    async def get_posts(self, uris: List[str]) -> List[PostFact]:
        """
        Fetch post views for up to 25 URIs and reduce them to post facts.

        Posts that are deleted or not visible are simply absent from the result.
        """
        if len(uris) > GET_POSTS_MAX_URIS:
            raise ValueError(
                f"getPosts accepts at most {GET_POSTS_MAX_URIS} URIs, got {len(uris)}"
            )
        if not uris:
            return []

        headers = await self._auth_headers()
        resp = await self._request(
            "GET",
            "/xrpc/app.bsky.feed.getPosts",
            headers=headers,
            params={"uris": list(uris)},
            timeout=30.0,
        )
        posts = resp.json().get("posts", []) or []
        return [PostFact.from_post_view(p) for p in posts if p.get("uri")]
