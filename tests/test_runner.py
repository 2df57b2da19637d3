"""
Runner tests: paging, pass bookkeeping and off-loop persistence.
"""

import asyncio
from datetime import timedelta

import pytest

from src.notif_engine.config import EngineConfig
from src.notif_engine.engine import NotificationEngine
from src.notif_engine.post_store import SqlPostStore
from src.notif_engine.runner import persist_in_thread, pull_pages, run_once
from src.ops_model import Pass, get_ops_engine, get_ops_session_factory
from tests.fixtures import post, raw_notification


class FakeClient:
    """In-memory SocialClient serving fixed notification pages and posts."""

    platform_name = "fake"

    def __init__(self, pages, posts=()):
        self.pages = pages
        self.posts = {p.uri: p for p in posts}
        self.cursors = []

    async def authenticate(self):
        return True

    async def list_notifications(self, cursor=None, limit=50):
        self.cursors.append(cursor)
        index = int(cursor) if cursor else 0
        next_cursor = str(index + 1) if index + 1 < len(self.pages) else None
        return self.pages[index], next_cursor

    async def get_posts(self, uris):
        return [self.posts[u] for u in uris if u in self.posts]


PAGES = [
    [
        raw_notification("at://b/post/r1", "reply", "2024-05-01T10:00:00Z", subject="at://me/post/p0"),
        raw_notification("at://c/like/1", "like", "2024-05-01T09:00:00Z", subject="at://me/post/p0"),
    ],
    [raw_notification("at://d/post/r2", "reply", "2024-05-01T11:00:00Z", subject="at://b/post/r1")],
    [raw_notification("at://e/follow/1", "follow", "2024-05-01T08:00:00Z")],
]
POSTS = [
    post("at://me/post/p0", text="root"),
    post("at://b/post/r1", parent="at://me/post/p0", root="at://me/post/p0"),
    post("at://d/post/r2", parent="at://b/post/r1", root="at://me/post/p0"),
]


@pytest.fixture
def db_engine(tmp_path):
    return get_ops_engine(f"sqlite:///{tmp_path / 'ops.db'}")


def test_pull_pages_follows_cursor_up_to_max_pages():
    client = FakeClient(PAGES)
    engine = NotificationEngine(client.get_posts)

    added = asyncio.run(pull_pages(client, engine, max_pages=2))

    assert added == 3
    assert client.cursors == [None, "1"]


def test_run_once_enriches_and_records_pass(db_engine):
    client = FakeClient(PAGES, POSTS)
    store = SqlPostStore(engine=db_engine, max_age=timedelta(days=3650))
    engine = NotificationEngine(client.get_posts, on_merged=persist_in_thread(store))
    session_factory = get_ops_session_factory(db_engine)

    asyncio.run(run_once(client, engine, EngineConfig(max_pages=5), session_factory))

    assert [t.root_uri for t in engine.conversations()] == ["at://me/post/p0"]
    assert sorted(p.uri for p in store.load()) == sorted(p.uri for p in POSTS)

    session = session_factory()
    try:
        passes = session.query(Pass).all()
    finally:
        session.close()
    assert len(passes) == 1
    assert passes[0].success is True
    assert passes[0].messages_processed == 4
