#!/usr/bin/env python3
"""
Notification runner: pulls Bluesky notifications, fills in reply ancestry,
and logs the aggregated feed and the reconstructed conversations.

Usage:
    python -m src.notif_engine.runner
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from dotenv import load_dotenv

from ..ops_model import Pass, get_ops_session_factory
from ..social_clients import BlueskyClient, SocialClient
from .config import EngineConfig
from .engine import NotificationEngine
from .logging_config import setup_engine_logging
from .post_cache import PostFactCache
from .post_store import SqlPostStore
from .types import AggregatedCluster, PostFact

logger = logging.getLogger("notif_engine.runner")


def _iso_now() -> datetime:
    return datetime.now(timezone.utc)


async def pull_pages(client: SocialClient, engine: NotificationEngine, max_pages: int) -> int:
    """Page through listNotifications into the engine. Returns events added."""
    cursor: Optional[str] = None
    added = 0
    for page in range(1, max_pages + 1):
        items, cursor = await client.list_notifications(cursor=cursor)
        added += engine.ingest(items)
        logger.info(f"Page {page}: {len(items)} notification(s)")
        if not cursor or not items:
            break
    return added


def log_summary(engine: NotificationEngine, limit: int = 20) -> None:
    feed = engine.aggregated()
    logger.info(f"Feed: {len(feed)} item(s) from {len(engine.events)} notification(s)")
    for item in feed[:limit]:
        if isinstance(item, AggregatedCluster):
            handles = ", ".join(a.handle for a in item.actors[:3])
            logger.info(
                f"  [{item.latest_timestamp:%Y-%m-%d %H:%M}] {item.count} {item.describe()} "
                f"({handles}{'…' if len(item.actors) > 3 else ''})"
            )
        else:
            logger.info(
                f"  [{item.indexed_at:%Y-%m-%d %H:%M}] @{item.actor.handle} {item.reason.value}"
            )

    threads = engine.conversations()
    logger.info(f"Conversations: {len(threads)}")
    for thread in threads[:limit]:
        preview = (thread.root_post.content or "") if thread.root_post else "[post unavailable]"
        logger.info(
            f"  {thread.total_replies} repl{'y' if thread.total_replies == 1 else 'ies'} "
            f"({thread.unread_count} unread) from {len(thread.participant_handles)} "
            f"participant(s): {preview[:80]}"
        )


def _record_pass(session_factory, engine: NotificationEngine, started: datetime) -> None:
    session = session_factory()
    try:
        stamps = [e.indexed_at for e in engine.events if e.indexed_at]
        stats = engine.coordinator.stats()
        session.add(
            Pass(
                pass_type="bluesky_notifications",
                start_time=started.replace(tzinfo=None),
                end_time=_iso_now().replace(tzinfo=None),
                last_processed_time=(
                    max(stamps).astimezone(timezone.utc).replace(tzinfo=None)
                    if stamps
                    else None
                ),
                messages_processed=len(engine.events),
                success=True,
                notes=", ".join(f"{k}={v}" for k, v in sorted(stats.items())),
            )
        )
        session.commit()
    except Exception:
        logger.exception("Failed to record pass")
        session.rollback()
    finally:
        session.close()


async def run_once(
    client: SocialClient,
    engine: NotificationEngine,
    config: EngineConfig,
    session_factory=None,
) -> None:
    started = _iso_now()
    await pull_pages(client, engine, config.max_pages)
    changed = await engine.refresh(max_rounds=config.enrich_max_rounds)
    logger.info(
        f"Enrichment merged {changed} post fact(s); states: {engine.coordinator.stats()}"
    )
    log_summary(engine)
    if session_factory is not None:
        _record_pass(session_factory, engine, started)


def persist_in_thread(store: SqlPostStore):
    """Wrap ``store.save`` so the blocking commit runs off the event loop."""

    async def _persist(facts: List[PostFact]) -> None:
        saved = await asyncio.to_thread(store.save, facts)
        logger.debug(f"Persisted {saved} post fact(s)")

    return _persist


async def main():
    load_dotenv()
    config = EngineConfig.from_env()
    setup_engine_logging(config.log_dir)

    store = SqlPostStore(max_age=timedelta(days=config.post_cache_max_age_days))
    store.prune()
    cache = PostFactCache(store.load())

    client = BlueskyClient()
    if not await client.authenticate():
        raise SystemExit(
            "Bluesky authentication failed. Set BLUESKY_USERNAME/BLUESKY_PASSWORD."
        )

    engine = NotificationEngine(
        client.get_posts,
        cache=cache,
        batch_size=config.fetch_batch_size,
        max_concurrency=config.fetch_concurrency,
        on_merged=persist_in_thread(store),
    )
    session_factory = get_ops_session_factory(store.engine)

    logger.info(f"Notification runner started as {client.handle}")
    while True:
        try:
            await run_once(client, engine, config, session_factory)
        except Exception as e:
            logger.exception(f"Error in notification pass: {e}")
        if config.poll_interval <= 0:
            break
        await asyncio.sleep(config.poll_interval)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nStopping notification runner…")
