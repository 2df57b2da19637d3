"""
Aggregation of notifications into time-windowed display clusters.

Likes, reposts, quotes and follows about the same target collapse into one
cluster when they arrive in a burst. Replies and mentions always stay single.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Dict, Iterable, List, Tuple, Union

from .types import (
    AGGREGABLE_REASONS,
    Actor,
    AggregatedCluster,
    NotificationEvent,
    Reason,
)

logger = logging.getLogger("notif_engine.aggregation")

# Maximum gap between two consecutive events of the same chain
AGGREGATION_WINDOW = timedelta(hours=24)

FOLLOW_KEY = "follow-all"
NO_SUBJECT = "no-subject"

# Minimum chain length to emit a cluster, per reason
MIN_CLUSTER_SIZE = {
    Reason.FOLLOW: 2,
    Reason.LIKE: 3,
    Reason.REPOST: 3,
    Reason.QUOTE: 3,
}

FeedItem = Union[AggregatedCluster, NotificationEvent]


def grouping_key(event: NotificationEvent) -> str:
    """Key shared by events that may be aggregated together."""
    if event.reason is Reason.FOLLOW:
        return FOLLOW_KEY
    return f"{event.reason.value}:{event.subject_uri or NO_SUBJECT}"


def _recency_key(event: NotificationEvent) -> Tuple[float, str]:
    # Newest first, URI ascending on equal timestamps
    return (-event.indexed_at.timestamp(), event.uri)


def split_chains(
    events: List[NotificationEvent], window: timedelta = AGGREGATION_WINDOW
) -> List[List[NotificationEvent]]:
    """
    Split time-descending events into runs where each gap is within ``window``.

    Two bursts three days apart become two chains, even if they share a key.
    """
    chains: List[List[NotificationEvent]] = []
    current: List[NotificationEvent] = []
    for event in events:
        if current and current[-1].indexed_at - event.indexed_at > window:
            chains.append(current)
            current = []
        current.append(event)
    if current:
        chains.append(current)
    return chains


def _unique_events(events: Iterable[NotificationEvent]) -> List[NotificationEvent]:
    # Identity is the URI; a read copy wins over an unread one
    by_uri: Dict[str, NotificationEvent] = {}
    for event in events:
        kept = by_uri.get(event.uri)
        if kept is None:
            by_uri[event.uri] = event
        elif event.is_read and not kept.is_read:
            by_uri[event.uri] = replace(kept, is_read=True)
    return list(by_uri.values())


def _unique_actors(members: Iterable[NotificationEvent]) -> Tuple[Actor, ...]:
    seen: Dict[str, Actor] = {}
    for member in members:
        seen.setdefault(member.actor.id, member.actor)
    return tuple(seen.values())


def _feed_order(item: FeedItem) -> Tuple[float, str]:
    if isinstance(item, AggregatedCluster):
        return (-item.latest_timestamp.timestamp(), item.members[0].uri)
    return _recency_key(item)


def process_aggregation(events: Iterable[NotificationEvent]) -> List[FeedItem]:
    """
    Collapse bursts of same-type events into clusters.

    Returns clusters and single events together, newest first by effective
    timestamp (a cluster's ``latest_timestamp``, an event's ``indexed_at``),
    with the URI as a deterministic secondary key. Repeated URIs count once.
    Events without a usable timestamp are left out.
    """
    items: List[FeedItem] = []
    groups: Dict[str, List[NotificationEvent]] = {}
    skipped = 0

    for event in _unique_events(events):
        if not event.is_orderable:
            skipped += 1
            continue
        if event.reason in AGGREGABLE_REASONS:
            groups.setdefault(grouping_key(event), []).append(event)
        else:
            items.append(event)

    if skipped:
        logger.debug(f"Skipped {skipped} event(s) without a usable timestamp")

    for key, group in groups.items():
        group.sort(key=_recency_key)
        min_count = MIN_CLUSTER_SIZE[group[0].reason]

        for chain in split_chains(group):
            if len(chain) < min_count:
                items.extend(chain)
                continue
            items.append(
                AggregatedCluster(
                    reason=chain[0].reason,
                    target_key=key,
                    members=tuple(chain),
                    latest_timestamp=chain[0].indexed_at,
                    actors=_unique_actors(chain),
                )
            )

    items.sort(key=_feed_order)
    return items
