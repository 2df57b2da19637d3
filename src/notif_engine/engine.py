"""
Facade tying the pure transforms to the shared cache and the enrichment loop.

Pages of raw notifications and fetched post facts may arrive in any order; the
derived views only depend on the accumulated event set and the cache contents.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .aggregation import FeedItem, process_aggregation
from .conversations import build_conversations, filter_conversations
from .enrichment import EnrichmentCoordinator, FetchPosts, get_frontier
from .normalizer import normalize_events
from .post_cache import PostFactCache
from .roots import RootResolver
from .thread_tree import build_thread_tree
from .types import ConversationThread, NotificationEvent, Reason, ThreadNode

logger = logging.getLogger("notif_engine.engine")


class NotificationEngine:
    """Accumulates notifications and produces the aggregated feed and conversations."""

    def __init__(
        self,
        fetch_posts: FetchPosts,
        cache: Optional[PostFactCache] = None,
        batch_size: int = 25,
        max_concurrency: int = 4,
        on_merged=None,
    ):
        self.cache = cache if cache is not None else PostFactCache()
        self.coordinator = EnrichmentCoordinator(
            self.cache,
            fetch_posts,
            batch_size=batch_size,
            max_concurrency=max_concurrency,
            on_merged=on_merged,
        )
        self.resolver = RootResolver()
        self._events: Dict[str, NotificationEvent] = {}

    @property
    def events(self) -> List[NotificationEvent]:
        return list(self._events.values())

    def ingest(self, raw_events: Iterable[Dict[str, Any]]) -> int:
        """Add a page of raw notifications. Returns how many new events were kept."""
        batch = normalize_events(raw_events)
        added = 0
        for event in batch.events:
            known = self._events.get(event.uri)
            if known is None:
                self._events[event.uri] = event
                added += 1
            elif event.is_read and not known.is_read:
                self._events[event.uri] = event
        return added

    def reply_events(self) -> List[NotificationEvent]:
        return [
            e for e in self._events.values() if e.reason is Reason.REPLY and e.is_orderable
        ]

    def seeds(self) -> List[str]:
        """Reply URIs and their subjects, fetched so their ancestry becomes known."""
        uris = set()
        for event in self.reply_events():
            uris.add(event.uri)
            if event.subject_uri:
                uris.add(event.subject_uri)
        return sorted(uris)

    def frontier(self) -> List[str]:
        return get_frontier(self.cache.snapshot(), self.coordinator.states, self.seeds())

    async def refresh(self, max_rounds: int = 10) -> int:
        """Fetch missing ancestry until settled. Returns cache entries changed."""
        return await self.coordinator.run_until_settled(self.seeds(), max_rounds)

    def aggregated(self) -> List[FeedItem]:
        return process_aggregation(self._events.values())

    def conversations(self, query: str = "") -> List[ConversationThread]:
        snapshot = self.cache.snapshot()
        threads = build_conversations(self.reply_events(), snapshot, self.resolver)
        return filter_conversations(threads, query, snapshot) if query else threads

    def thread_tree(self, root_uri: str) -> Optional[ThreadNode]:
        snapshot = self.cache.snapshot()
        for thread in build_conversations(self.reply_events(), snapshot, self.resolver):
            if thread.root_uri == root_uri:
                return build_thread_tree(thread, snapshot)
        return None
