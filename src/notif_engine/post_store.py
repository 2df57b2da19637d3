"""SQLAlchemy-backed persistence for post facts."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from ..ops_model import CachedPost, ensure_tables, get_ops_session_factory
from .types import PostFact

logger = logging.getLogger("notif_engine.post_store")

# Posts rarely change; a week-old fetch is still good enough
DEFAULT_MAX_AGE = timedelta(days=7)


def _to_db(dt: Optional[datetime]) -> Optional[datetime]:
    # Stored as naive UTC
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


class SqlPostStore:
    """
    Write-through store for the post fact cache.

    ``load`` returns facts fetched within ``max_age``; ``save`` upserts facts
    without clearing ancestry already on record.
    """

    def __init__(self, engine=None, max_age: timedelta = DEFAULT_MAX_AGE):
        self.engine = ensure_tables(engine)
        self.session_factory = get_ops_session_factory(self.engine)
        self.max_age = max_age

    def load(self, now: Optional[datetime] = None) -> List[PostFact]:
        now = now or datetime.now(timezone.utc)
        cutoff = _to_db(now - self.max_age)
        session = self.session_factory()
        try:
            rows = (
                session.query(CachedPost)
                .filter(CachedPost.fetched_at >= cutoff)
                .order_by(CachedPost.uri.asc())
                .all()
            )
            facts = [
                PostFact(
                    uri=row.uri,
                    parent_uri=row.parent_uri,
                    root_uri=row.root_uri,
                    content=row.content,
                    author_handle=row.author_handle,
                    indexed_at=_from_db(row.indexed_at),
                )
                for row in rows
            ]
        finally:
            session.close()
        logger.info(f"Loaded {len(facts)} cached post(s) from the ops database")
        return facts

    def save(self, posts: Iterable[PostFact], now: Optional[datetime] = None) -> int:
        fetched_at = _to_db(now or datetime.now(timezone.utc))
        unique = {p.uri: p for p in posts}
        session = self.session_factory()
        saved = 0
        try:
            for post in unique.values():
                row = session.get(CachedPost, post.uri)
                if row is None:
                    session.add(
                        CachedPost(
                            uri=post.uri,
                            parent_uri=post.parent_uri,
                            root_uri=post.root_uri,
                            content=post.content,
                            author_handle=post.author_handle,
                            indexed_at=_to_db(post.indexed_at),
                            fetched_at=fetched_at,
                        )
                    )
                else:
                    row.parent_uri = row.parent_uri or post.parent_uri
                    row.root_uri = row.root_uri or post.root_uri
                    if post.content is not None:
                        row.content = post.content
                    row.author_handle = post.author_handle or row.author_handle
                    row.indexed_at = row.indexed_at or _to_db(post.indexed_at)
                    row.fetched_at = fetched_at
                saved += 1
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        return saved

    def prune(self, now: Optional[datetime] = None) -> int:
        """Delete expired rows. Returns the number removed."""
        now = now or datetime.now(timezone.utc)
        cutoff = _to_db(now - self.max_age)
        session = self.session_factory()
        try:
            removed = (
                session.query(CachedPost)
                .filter(CachedPost.fetched_at < cutoff)
                .delete(synchronize_session=False)
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        if removed:
            logger.info(f"Pruned {removed} expired cached post(s)")
        return removed
