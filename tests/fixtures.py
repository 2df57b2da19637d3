"""Builders shared by the engine tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from src.notif_engine.types import Actor, NotificationEvent, PostFact, Reason

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def at(minutes: float = 0, days: float = 0) -> datetime:
    return BASE_TIME + timedelta(days=days, minutes=minutes)


def make_event(
    uri: str,
    reason: str = "like",
    indexed_at: Optional[datetime] = BASE_TIME,
    subject: Optional[str] = None,
    actor_id: str = "did:plc:alice",
    handle: Optional[str] = None,
    is_read: bool = False,
) -> NotificationEvent:
    return NotificationEvent(
        reason=Reason(reason),
        actor=Actor(id=actor_id, handle=handle or actor_id.split(":")[-1] + ".bsky.social"),
        uri=uri,
        indexed_at=indexed_at,
        subject_uri=subject,
        is_read=is_read,
    )


def raw_notification(
    uri: str,
    reason: str = "like",
    indexed_at="2024-05-01T09:00:00.000Z",
    subject: Optional[str] = None,
    did: str = "did:plc:alice",
    handle: str = "alice.bsky.social",
    is_read: bool = False,
) -> dict:
    item = {
        "uri": uri,
        "cid": "bafy" + uri[-6:],
        "reason": reason,
        "author": {"did": did, "handle": handle, "displayName": handle.split(".")[0]},
        "indexedAt": indexed_at,
        "isRead": is_read,
    }
    if subject:
        item["reasonSubject"] = subject
    return item


def post(
    uri: str,
    parent: Optional[str] = None,
    root: Optional[str] = None,
    text: Optional[str] = None,
    handle: Optional[str] = None,
    indexed_at: Optional[datetime] = None,
) -> PostFact:
    return PostFact(
        uri=uri,
        parent_uri=parent,
        root_uri=root,
        content=text,
        author_handle=handle,
        indexed_at=indexed_at,
    )
