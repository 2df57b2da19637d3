"""
Root resolution for reply notifications.

The root of a reply is the topmost post of its conversation. Only facts already
in the cache are used; nothing here fetches. Resolution always terminates, even
on corrupt ancestry where parents point back at each other.
"""

import logging
from typing import Dict, Optional, Set, Tuple

from .post_cache import CacheSnapshot
from .types import NotificationEvent

logger = logging.getLogger("notif_engine.roots")


def walk_to_root(
    uri: str, snapshot: CacheSnapshot, visited: Optional[Set[str]] = None
) -> str:
    """
    Follow cached ancestry from ``uri`` up to the highest reachable post.

    A declared ``root_uri`` ends the walk immediately. Otherwise the walk moves to
    the parent while the parent is cached. If a URI comes up twice, that URI is
    returned as the root.
    """
    if visited is None:
        visited = set()

    current = uri
    while True:
        if current in visited:
            logger.debug(f"Cycle in ancestry of {uri} at {current}")
            return current
        visited.add(current)

        post = snapshot.get(current)
        if post is None:
            return current
        if post.root_uri:
            return post.root_uri
        if post.parent_uri and (
            post.parent_uri in visited or post.parent_uri in snapshot
        ):
            current = post.parent_uri
            continue
        return current


def resolve_root(
    event: NotificationEvent,
    snapshot: CacheSnapshot,
    visited: Optional[Set[str]] = None,
) -> str:
    """
    URI of the conversation root for a reply event, given the cached facts.

    - fact for the reply cached: walk from it (declared root wins)
    - no fact, subject known: walk from the subject if it is cached, otherwise
      use the subject as a provisional root
    - nothing known: the reply is its own (orphan) root
    """
    if event.uri in snapshot:
        return walk_to_root(event.uri, snapshot, visited)
    if event.subject_uri:
        if event.subject_uri in snapshot:
            return walk_to_root(event.subject_uri, snapshot, visited)
        return event.subject_uri
    return event.uri


class RootResolver:
    """
    Memoizing wrapper around ``resolve_root``.

    Answers are cached per (event, snapshot). Any other snapshot object drops the
    memo, so answers improve as soon as the cache gains facts, even when two
    snapshots built with ``CacheSnapshot.of`` share a version number.
    ``PostFactCache.snapshot`` returns one object per version, which keeps the
    memo warm across calls.
    """

    def __init__(self):
        self._snapshot: Optional[CacheSnapshot] = None
        self._memo: Dict[Tuple[str, Optional[str]], str] = {}
        self.hits = 0
        self.misses = 0

    def resolve(self, event: NotificationEvent, snapshot: CacheSnapshot) -> str:
        if snapshot is not self._snapshot:
            self._memo.clear()
            self._snapshot = snapshot

        key = (event.uri, event.subject_uri)
        root = self._memo.get(key)
        if root is not None:
            self.hits += 1
            return root

        self.misses += 1
        root = resolve_root(event, snapshot)
        self._memo[key] = root
        return root
