"""
Enrichment of the post fact cache with missing ancestry.

``get_frontier`` decides what to fetch from a cache snapshot alone. The
``EnrichmentCoordinator`` owns the per-URI fetch state and talks to the network
collaborator in bounded batches.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from .post_cache import CacheSnapshot, PostFactCache
from .types import PostFact

logger = logging.getLogger("notif_engine.enrichment")

# Bluesky getPosts accepts at most 25 URIs per request
MAX_BATCH_SIZE = 25

FetchPosts = Callable[[List[str]], Awaitable[Sequence[Any]]]


class UriState(str, Enum):
    UNKNOWN = "unknown"
    REQUESTED = "requested"
    RESOLVED = "resolved"
    FAILED = "failed"


_SETTLED = (UriState.REQUESTED, UriState.FAILED)


def get_frontier(
    snapshot: CacheSnapshot,
    states: Optional[Mapping[str, UriState]] = None,
    seeds: Iterable[str] = (),
) -> List[str]:
    """
    URIs worth fetching next, sorted.

    These are parents and roots referenced by cached facts, plus any ``seeds``,
    that are neither cached nor already requested nor known to have failed.
    """
    states = states or {}
    candidates: Set[str] = set()
    for post in snapshot.posts.values():
        if post.parent_uri:
            candidates.add(post.parent_uri)
        if post.root_uri:
            candidates.add(post.root_uri)
    candidates.update(uri for uri in seeds if uri)

    return sorted(
        uri
        for uri in candidates
        if uri not in snapshot and states.get(uri, UriState.UNKNOWN) not in _SETTLED
    )


def _chunks(items: List[str], size: int) -> List[List[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _as_fact(item: Any) -> PostFact:
    if isinstance(item, PostFact):
        return item
    return PostFact.from_post_view(item)


class EnrichmentCoordinator:
    """
    Fetches missing ancestry and merges it into the cache.

    State per URI: unknown -> requested -> resolved | failed. URIs are marked
    requested before any await, so overlapping passes never ask twice. Failed
    URIs stay failed for the lifetime of the coordinator.
    """

    def __init__(
        self,
        cache: PostFactCache,
        fetch_posts: FetchPosts,
        batch_size: int = MAX_BATCH_SIZE,
        max_concurrency: int = 4,
        on_merged: Optional[Callable[[List[PostFact]], Any]] = None,
    ):
        """
        Args:
            cache: Shared post fact cache to read from and merge into
            fetch_posts: Coroutine function returning post facts (or post view
                dicts) for up to ``batch_size`` URIs; may raise
            batch_size: URIs per request, clamped to 1..25
            max_concurrency: Maximum batches in flight at once
            on_merged: Called once per round with every fact fetched in it (e.g.
                to persist them); may be a coroutine function
        """
        self.cache = cache
        self.fetch_posts = fetch_posts
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.max_concurrency = max(1, max_concurrency)
        self.on_merged = on_merged
        self._states: Dict[str, UriState] = {}

    def state(self, uri: str) -> UriState:
        return self._states.get(uri, UriState.UNKNOWN)

    @property
    def states(self) -> Mapping[str, UriState]:
        return dict(self._states)

    def stats(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in UriState if s is not UriState.UNKNOWN}
        for s in self._states.values():
            counts[s.value] += 1
        return counts

    def frontier(self, seeds: Iterable[str] = ()) -> List[str]:
        return get_frontier(self.cache.snapshot(), self._states, seeds)

    def reset_failed(self) -> int:
        """Forget failures, e.g. at a session boundary. Returns how many were reset."""
        failed = [uri for uri, s in self._states.items() if s is UriState.FAILED]
        for uri in failed:
            del self._states[uri]
        if failed:
            logger.info(f"Reset {len(failed)} failed URI(s) for retry")
        return len(failed)

    async def enrich_once(self, seeds: Iterable[str] = ()) -> int:
        """
        Fetch the current frontier once. Returns the number of cache entries changed.
        """
        frontier = self.frontier(seeds)
        if not frontier:
            return 0

        for uri in frontier:
            self._states[uri] = UriState.REQUESTED

        batches = _chunks(frontier, self.batch_size)
        logger.info(
            f"Fetching {len(frontier)} ancestor post(s) in {len(batches)} batch(es)"
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(batch: List[str]) -> Tuple[int, List[PostFact]]:
            async with semaphore:
                return await self._fetch_batch(batch)

        results = await asyncio.gather(*(_bounded(b) for b in batches))
        fetched = [fact for _, facts in results for fact in facts]
        if fetched:
            await self._notify_merged(fetched)
        return sum(changed for changed, _ in results)

    async def run_until_settled(
        self, seeds: Iterable[str] = (), max_rounds: int = 10
    ) -> int:
        """
        Repeat ``enrich_once`` until nothing is left to fetch or ``max_rounds`` is hit.

        Each round can reveal new ancestors (a fetched parent declares its own
        parent), hence the loop.
        """
        seeds = list(seeds)
        total = 0
        for round_no in range(1, max_rounds + 1):
            if not self.frontier(seeds):
                break
            changed = await self.enrich_once(seeds)
            total += changed
            logger.debug(f"Enrichment round {round_no}: {changed} change(s)")
        else:
            remaining = self.frontier(seeds)
            if remaining:
                logger.warning(
                    f"Stopped enrichment after {max_rounds} rounds with "
                    f"{len(remaining)} URI(s) still on the frontier"
                )
        return total

    async def _fetch_batch(self, batch: List[str]) -> Tuple[int, List[PostFact]]:
        try:
            raw = await self.fetch_posts(batch)
            facts = [_as_fact(item) for item in raw]
        except Exception as e:
            # Network and payload errors stay here; the batch is given up on
            logger.warning(f"Failed to fetch batch of {len(batch)} post(s): {e}")
            for uri in batch:
                self._states[uri] = UriState.FAILED
            return 0, []

        # Results are merged even if the frontier moved on meanwhile
        changed = self.cache.merge(facts)
        returned = {f.uri for f in facts}
        for uri in returned:
            self._states[uri] = UriState.RESOLVED
        missing = [uri for uri in batch if uri not in returned]
        for uri in missing:
            # Deleted, blocked or otherwise unavailable
            self._states[uri] = UriState.FAILED
        if missing:
            logger.info(f"{len(missing)} requested post(s) not returned; marked failed")

        return changed, facts

    async def _notify_merged(self, facts: List[PostFact]) -> None:
        if self.on_merged is None:
            return
        try:
            result = self.on_merged(facts)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_merged callback failed")
