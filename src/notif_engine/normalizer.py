"""Validate raw notification records and turn them into NotificationEvent values."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from .logging_config import get_data_quality_logger
from .types import Actor, NotificationEvent, Reason, parse_timestamp

logger = logging.getLogger("notif_engine.normalizer")
dq_logger = get_data_quality_logger()


@dataclass
class NormalizedBatch:
    events: List[NotificationEvent] = field(default_factory=list)
    rejected: int = 0

    @property
    def orderable(self) -> List[NotificationEvent]:
        return [e for e in self.events if e.is_orderable]

    @property
    def listing_only(self) -> List[NotificationEvent]:
        return [e for e in self.events if not e.is_orderable]


def _report(stage: str, uri: Optional[str], reason: Any, detail: str) -> None:
    dq_logger.warning(
        f"{stage}: {detail}",
        extra={"stage": stage, "event_uri": uri, "reason": reason, "detail": detail},
    )


def _coerce_reason(value: Any) -> Optional[Reason]:
    try:
        return Reason(value)
    except ValueError:
        return None


def _as_flag(value: Any) -> bool:
    # Flattened rows may carry "true"/"false" strings or 0/1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _actor_from(raw: Dict[str, Any]) -> Actor:
    # listNotifications shape carries an author object; flattened client
    # records carry actor_id/actor_handle
    author = raw.get("author")
    if isinstance(author, dict):
        return Actor(
            id=author.get("did") or "",
            handle=author.get("handle") or "",
            display_name=author.get("displayName"),
            avatar=author.get("avatar"),
        )
    return Actor(
        id=raw.get("actor_id") or "",
        handle=raw.get("actor_handle") or "",
        display_name=raw.get("actor_display_name"),
        avatar=raw.get("actor_avatar"),
    )


def normalize_event(raw: Dict[str, Any]) -> Optional[NotificationEvent]:
    """
    Normalize one raw record. Returns None (and logs) if it must be dropped.

    A record with an unparsable timestamp is kept with ``indexed_at=None`` so it
    can still be listed, but it is excluded from clustering and threading.
    """
    if not isinstance(raw, dict):
        _report("normalize", None, None, f"record is not a mapping: {type(raw).__name__}")
        return None

    uri = raw.get("uri") or raw.get("post_uri")
    reason_value = raw.get("reason")
    indexed_raw = raw.get("indexedAt", raw.get("indexed_at"))

    if not uri:
        _report("normalize", None, reason_value, "missing uri")
        return None
    if not reason_value:
        _report("normalize", uri, None, "missing reason")
        return None
    if indexed_raw is None or indexed_raw == "":
        _report("normalize", uri, reason_value, "missing indexedAt")
        return None

    reason = _coerce_reason(reason_value)
    if reason is None:
        _report("normalize", uri, reason_value, "unknown reason")
        return None

    indexed_at = parse_timestamp(indexed_raw)
    if indexed_at is None:
        _report(
            "normalize",
            uri,
            reason.value,
            f"unparsable indexedAt {indexed_raw!r}; kept for listing only",
        )

    subject_uri = raw.get("reasonSubject") or raw.get("subject_uri")
    if reason is Reason.REPLY and not subject_uri:
        subject_uri = raw.get("parent_uri")

    return NotificationEvent(
        reason=reason,
        actor=_actor_from(raw),
        uri=uri,
        indexed_at=indexed_at,
        subject_uri=subject_uri,
        is_read=_as_flag(raw.get("isRead", raw.get("is_read"))),
        cid=raw.get("cid") or raw.get("post_cid"),
        raw_indexed_at=indexed_raw if isinstance(indexed_raw, str) else None,
    )


def normalize_events(raw_events: Iterable[Dict[str, Any]]) -> NormalizedBatch:
    """
    Normalize a page (or several pages) of raw records.

    Duplicate URIs are collapsed to the first occurrence; if any copy is marked
    read, the kept event is read.
    """
    batch = NormalizedBatch()
    by_uri: Dict[str, int] = {}

    for raw in raw_events:
        event = normalize_event(raw)
        if event is None:
            batch.rejected += 1
            continue
        pos = by_uri.get(event.uri)
        if pos is None:
            by_uri[event.uri] = len(batch.events)
            batch.events.append(event)
        elif event.is_read and not batch.events[pos].is_read:
            batch.events[pos] = replace(batch.events[pos], is_read=True)

    if batch.rejected:
        logger.info(
            f"Normalized {len(batch.events)} event(s), rejected {batch.rejected}"
        )
    return batch
