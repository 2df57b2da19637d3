"""
Types for the notification aggregation and conversation engine.

All records are immutable values. Clusters and threads are projections that get
recomputed whenever the event set or the post cache changes.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class Reason(str, Enum):
    """
    Interaction type carried by a notification.

    LIKE, REPOST, FOLLOW, QUOTE: aggregable into clusters
    REPLY, MENTION: always shown individually
    """

    LIKE = "like"
    REPOST = "repost"
    FOLLOW = "follow"
    QUOTE = "quote"
    REPLY = "reply"
    MENTION = "mention"


AGGREGABLE_REASONS = frozenset(
    {Reason.LIKE, Reason.REPOST, Reason.FOLLOW, Reason.QUOTE}
)

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"(?<=:\d\d)\.(\d+)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware UTC-based
    datetime. Naive values are taken as UTC. Returns None if unparsable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            text = _FRACTION.sub(
                lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.replace("Z", "+00:00"), count=1
            )
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Actor:
    """Account that performed an interaction."""

    id: str
    handle: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None


@dataclass(frozen=True)
class NotificationEvent:
    """A single normalized notification. Identity is ``uri``."""

    reason: Reason
    actor: Actor
    uri: str
    indexed_at: Optional[datetime]
    """None when the raw timestamp could not be parsed (listing-only event)"""

    subject_uri: Optional[str] = None
    is_read: bool = False
    cid: Optional[str] = None
    raw_indexed_at: Optional[str] = None

    @property
    def is_orderable(self) -> bool:
        """Whether the event can take part in clustering and threading."""
        return self.indexed_at is not None


@dataclass(frozen=True)
class PostFact:
    """What is known about a post: its ancestry and, optionally, its content."""

    uri: str
    parent_uri: Optional[str] = None
    root_uri: Optional[str] = None
    content: Optional[str] = None
    author_handle: Optional[str] = None
    indexed_at: Optional[datetime] = None

    @classmethod
    def from_post_view(cls, view: Dict[str, Any]) -> "PostFact":
        """Build a fact from an ``app.bsky.feed.defs#postView`` dict."""
        record = view.get("record") or {}
        reply_ref = record.get("reply") or {}
        parent = reply_ref.get("parent") or {}
        root = reply_ref.get("root") or {}
        author = view.get("author") or {}
        return cls(
            uri=view["uri"],
            parent_uri=parent.get("uri"),
            root_uri=root.get("uri"),
            content=record.get("text"),
            author_handle=author.get("handle"),
            indexed_at=parse_timestamp(view.get("indexedAt"))
            or parse_timestamp(record.get("createdAt")),
        )

    def merged_with(self, other: "PostFact") -> "PostFact":
        """
        Combine two facts about the same post.

        Known fields are kept; missing ones are filled from ``other``. Ancestry is
        never cleared, so resolution quality cannot regress.
        """
        return PostFact(
            uri=self.uri,
            parent_uri=self.parent_uri or other.parent_uri,
            root_uri=self.root_uri or other.root_uri,
            content=self.content if self.content is not None else other.content,
            author_handle=self.author_handle or other.author_handle,
            indexed_at=self.indexed_at or other.indexed_at,
        )


# Display phrases, singular and plural
_ACTION_TEXT = {
    Reason.LIKE: ("liked your post", "recent likes on your post"),
    Reason.REPOST: ("reposted your post", "reposts of your post"),
    Reason.FOLLOW: ("followed you", "new followers"),
    Reason.QUOTE: ("quoted your post", "quotes of your post"),
}


@dataclass(frozen=True)
class AggregatedCluster:
    """A run of same-reason, same-target events close together in time."""

    reason: Reason
    target_key: str
    members: Tuple[NotificationEvent, ...]
    """Time-descending"""

    latest_timestamp: datetime
    actors: Tuple[Actor, ...]
    """De-duplicated by actor id, first-seen order"""

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def subject_uri(self) -> Optional[str]:
        return self.members[0].subject_uri

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self.members if not m.is_read)

    def describe(self) -> str:
        singular, plural = _ACTION_TEXT.get(
            self.reason, ("interacted with your post",) * 2
        )
        return singular if self.count == 1 else plural


@dataclass(frozen=True)
class ConversationThread:
    """Reply notifications grouped under the resolved root post."""

    root_uri: str
    replies: Tuple[NotificationEvent, ...]
    participant_handles: FrozenSet[str]
    latest_reply: NotificationEvent
    root_post: Optional[PostFact] = None

    @property
    def total_replies(self) -> int:
        return len(self.replies)

    @property
    def unread_count(self) -> int:
        return sum(1 for r in self.replies if not r.is_read)

    @property
    def is_group(self) -> bool:
        return len(self.participant_handles) > 2


@dataclass
class ThreadNode:
    """Node of a reconstructed reply tree."""

    uri: str
    post: Optional[PostFact] = None
    notification: Optional[NotificationEvent] = None
    children: List["ThreadNode"] = field(default_factory=list)
    depth: int = 0
    is_root: bool = False
