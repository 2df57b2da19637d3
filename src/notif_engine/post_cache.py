"""In-memory, append-only store of post facts with versioned snapshots."""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from .types import PostFact

logger = logging.getLogger("notif_engine.post_cache")


@dataclass(frozen=True)
class LookupResult:
    found: List[PostFact] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CacheSnapshot:
    """
    Read-only view of the cache at one version.

    Pure transforms take a snapshot so that a recomputation sees a stable set of
    facts even while enrichment merges new ones.
    """

    posts: Mapping[str, PostFact]
    version: int = 0

    def get(self, uri: Optional[str]) -> Optional[PostFact]:
        if not uri:
            return None
        return self.posts.get(uri)

    def __contains__(self, uri: object) -> bool:
        return uri in self.posts

    def __len__(self) -> int:
        return len(self.posts)

    @classmethod
    def of(cls, posts: Iterable[PostFact], version: int = 0) -> "CacheSnapshot":
        """Build a snapshot directly, mostly useful for tests and one-off runs."""
        return cls(MappingProxyType({p.uri: p for p in posts}), version)


class PostFactCache:
    """
    URI -> PostFact lookup shared between the engine and its enrichment loop.

    Entries are only ever added or completed, never removed. ``version`` goes up
    each time a merge changes something.
    """

    def __init__(self, posts: Optional[Iterable[PostFact]] = None):
        self._posts: Dict[str, PostFact] = {}
        self._version = 0
        self._snapshot: Optional[CacheSnapshot] = None
        if posts:
            self.merge(posts)

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._posts)

    def __contains__(self, uri: object) -> bool:
        return uri in self._posts

    def get(self, uri: str) -> Optional[PostFact]:
        return self._posts.get(uri)

    def lookup(self, uris: Iterable[str]) -> LookupResult:
        """Split ``uris`` into cached facts and URIs still missing (order kept, no duplicates)."""
        found: List[PostFact] = []
        missing: List[str] = []
        seen = set()
        for uri in uris:
            if uri in seen:
                continue
            seen.add(uri)
            post = self._posts.get(uri)
            if post is None:
                missing.append(uri)
            else:
                found.append(post)
        return LookupResult(found=found, missing=missing)

    def merge(self, posts: Iterable[PostFact]) -> int:
        """
        Upsert facts. Returns the number of entries that were added or completed.

        An existing fact keeps its known fields; the incoming one only fills gaps.
        """
        changed = 0
        for post in posts:
            existing = self._posts.get(post.uri)
            merged = post if existing is None else existing.merged_with(post)
            if merged != existing:
                self._posts[post.uri] = merged
                changed += 1
        if changed:
            self._version += 1
            logger.debug(
                f"Merged {changed} post fact(s); cache now holds {len(self._posts)} "
                f"at version {self._version}"
            )
        return changed

    def snapshot(self) -> CacheSnapshot:
        """Snapshot of the current version; the same object until the next change."""
        if self._snapshot is None or self._snapshot.version != self._version:
            self._snapshot = CacheSnapshot(
                MappingProxyType(dict(self._posts)), self._version
            )
        return self._snapshot
