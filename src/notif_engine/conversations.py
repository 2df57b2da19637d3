"""Grouping of reply notifications into conversation threads."""

import logging
from typing import Dict, Iterable, List, Optional

from .post_cache import CacheSnapshot
from .roots import RootResolver, resolve_root
from .types import ConversationThread, NotificationEvent, Reason

logger = logging.getLogger("notif_engine.conversations")


def _reply_order(event: NotificationEvent):
    return (-event.indexed_at.timestamp(), event.uri)


def build_conversations(
    reply_events: Iterable[NotificationEvent],
    snapshot: CacheSnapshot,
    resolver: Optional[RootResolver] = None,
) -> List[ConversationThread]:
    """
    Bucket replies under their resolved root.

    The whole grouping is redone on every call so threads always reflect the best
    root currently known. Threads come back newest activity first; replies inside
    a thread are newest first. Non-reply or unorderable events are ignored.
    """
    buckets: Dict[str, List[NotificationEvent]] = {}
    for event in reply_events:
        if event.reason is not Reason.REPLY or not event.is_orderable:
            continue
        root_uri = (
            resolver.resolve(event, snapshot)
            if resolver is not None
            else resolve_root(event, snapshot)
        )
        buckets.setdefault(root_uri, []).append(event)

    threads: List[ConversationThread] = []
    for root_uri, replies in buckets.items():
        # Identity is the URI, so a repeated event counts once
        unique = {r.uri: r for r in replies}
        ordered = sorted(unique.values(), key=_reply_order)
        threads.append(
            ConversationThread(
                root_uri=root_uri,
                replies=tuple(ordered),
                participant_handles=frozenset(
                    r.actor.handle for r in ordered if r.actor.handle
                ),
                latest_reply=ordered[0],
                root_post=snapshot.get(root_uri),
            )
        )

    threads.sort(key=lambda t: (_reply_order(t.latest_reply)[0], t.root_uri))
    logger.debug(
        f"Built {len(threads)} conversation(s) at cache version {snapshot.version}"
    )
    return threads


def filter_conversations(
    threads: Iterable[ConversationThread], query: str, snapshot: CacheSnapshot
) -> List[ConversationThread]:
    """Keep threads whose participants, root text or reply texts contain ``query``."""
    threads = list(threads)
    needle = (query or "").strip().lower()
    if not needle:
        return threads

    def _text(uri: str) -> str:
        post = snapshot.get(uri)
        return (post.content or "").lower() if post else ""

    matches = []
    for thread in threads:
        if any(needle in h.lower() for h in thread.participant_handles):
            matches.append(thread)
        elif needle in _text(thread.root_uri):
            matches.append(thread)
        elif any(needle in _text(r.uri) for r in thread.replies):
            matches.append(thread)
    return matches
