"""
Clusterer tests: chain splitting, thresholds, partitioning and ordering.
"""

import random
from datetime import timedelta

from src.notif_engine.aggregation import (
    AGGREGATION_WINDOW,
    FOLLOW_KEY,
    grouping_key,
    process_aggregation,
    split_chains,
)
from src.notif_engine.types import AggregatedCluster, NotificationEvent, Reason
from tests.fixtures import at, make_event

POST = "at://did:plc:me/app.bsky.feed.post/p1"


def _clusters(items):
    return [i for i in items if isinstance(i, AggregatedCluster)]


def _singles(items):
    return [i for i in items if isinstance(i, NotificationEvent)]


def test_two_bursts_three_days_apart_do_not_merge():
    events = [
        make_event("like/1", indexed_at=at(0), subject=POST, actor_id="did:plc:a"),
        make_event("like/2", indexed_at=at(10), subject=POST, actor_id="did:plc:b"),
        make_event("like/3", indexed_at=at(20), subject=POST, actor_id="did:plc:c"),
        make_event("like/4", indexed_at=at(days=3), subject=POST, actor_id="did:plc:d"),
        make_event("like/5", indexed_at=at(10, days=3), subject=POST, actor_id="did:plc:e"),
    ]

    items = process_aggregation(events)

    clusters = _clusters(items)
    assert len(clusters) == 1
    assert [m.uri for m in clusters[0].members] == ["like/3", "like/2", "like/1"]
    assert clusters[0].latest_timestamp == at(20)

    singles = _singles(items)
    assert sorted(s.uri for s in singles) == ["like/4", "like/5"]
    # Newest first overall
    assert [getattr(i, "uri", None) for i in items[:2]] == ["like/5", "like/4"]
    assert items[2] is clusters[0]


def test_consecutive_members_are_within_the_window():
    rng = random.Random(7)
    events = [
        make_event(
            f"like/{i}",
            indexed_at=at(minutes=rng.randint(0, 60 * 24 * 10)),
            subject=POST,
            actor_id=f"did:plc:{i}",
        )
        for i in range(60)
    ]

    for cluster in _clusters(process_aggregation(events)):
        for newer, older in zip(cluster.members, cluster.members[1:]):
            assert newer.indexed_at >= older.indexed_at
            assert newer.indexed_at - older.indexed_at <= AGGREGATION_WINDOW


def test_window_chain_is_not_transitive_bucket():
    # Each gap is 20h, so the chain spans 40h yet stays one cluster
    events = [
        make_event("like/1", indexed_at=at(0), subject=POST),
        make_event("like/2", indexed_at=at(20 * 60), subject=POST),
        make_event("like/3", indexed_at=at(40 * 60), subject=POST),
    ]
    clusters = _clusters(process_aggregation(events))
    assert len(clusters) == 1
    assert clusters[0].count == 3


def test_follow_threshold_is_two_and_others_three():
    follows = [
        make_event("follow/1", reason="follow", indexed_at=at(0), actor_id="did:plc:a"),
        make_event("follow/2", reason="follow", indexed_at=at(5), actor_id="did:plc:b"),
    ]
    reposts = [
        make_event("repost/1", reason="repost", indexed_at=at(0), subject=POST),
        make_event("repost/2", reason="repost", indexed_at=at(5), subject=POST),
    ]

    items = process_aggregation(follows + reposts)

    clusters = _clusters(items)
    assert len(clusters) == 1
    assert clusters[0].reason is Reason.FOLLOW
    assert clusters[0].target_key == FOLLOW_KEY
    assert clusters[0].describe() == "new followers"
    assert sorted(s.uri for s in _singles(items)) == ["repost/1", "repost/2"]


def test_no_cluster_below_threshold():
    rng = random.Random(3)
    reasons = ["like", "repost", "follow", "quote"]
    events = [
        make_event(
            f"e/{i}",
            reason=rng.choice(reasons),
            indexed_at=at(minutes=rng.randint(0, 60 * 24 * 5)),
            subject=rng.choice([POST, "at://p2", None]),
        )
        for i in range(80)
    ]
    for cluster in _clusters(process_aggregation(events)):
        minimum = 2 if cluster.reason is Reason.FOLLOW else 3
        assert cluster.count >= minimum


def test_replies_and_mentions_are_always_single():
    events = [
        make_event(f"reply/{i}", reason="reply", indexed_at=at(i), subject=POST)
        for i in range(5)
    ] + [
        make_event(f"mention/{i}", reason="mention", indexed_at=at(i))
        for i in range(5)
    ]

    items = process_aggregation(events)

    assert _clusters(items) == []
    assert len(items) == 10


def test_follows_share_one_key_and_others_key_on_subject():
    follow = make_event("f/1", reason="follow", subject="at://ignored")
    like_a = make_event("l/1", subject="at://a")
    like_none = make_event("l/2", subject=None)
    quote_a = make_event("q/1", reason="quote", subject="at://a")

    assert grouping_key(follow) == FOLLOW_KEY
    assert grouping_key(like_a) != grouping_key(quote_a)
    assert grouping_key(like_a) != grouping_key(like_none)


def test_likes_on_different_posts_do_not_cluster_together():
    events = [
        make_event("l/1", indexed_at=at(0), subject="at://a"),
        make_event("l/2", indexed_at=at(1), subject="at://a"),
        make_event("l/3", indexed_at=at(2), subject="at://b"),
        make_event("l/4", indexed_at=at(3), subject="at://b"),
    ]
    assert _clusters(process_aggregation(events)) == []


def test_actor_set_is_deduplicated_in_first_seen_order():
    events = [
        make_event("l/1", indexed_at=at(0), subject=POST, actor_id="did:plc:a"),
        make_event("l/2", indexed_at=at(1), subject=POST, actor_id="did:plc:b"),
        make_event("l/3", indexed_at=at(2), subject=POST, actor_id="did:plc:a"),
        make_event("l/4", indexed_at=at(3), subject=POST, actor_id="did:plc:c", is_read=True),
    ]

    cluster = _clusters(process_aggregation(events))[0]

    assert [a.id for a in cluster.actors] == ["did:plc:c", "did:plc:a", "did:plc:b"]
    assert cluster.count == 4
    assert cluster.unread_count == 3
    assert cluster.subject_uri == POST
    assert cluster.describe() == "recent likes on your post"


def test_events_without_timestamp_are_left_out():
    events = [
        make_event("l/1", indexed_at=None, subject=POST),
        make_event("m/1", reason="mention", indexed_at=None),
        make_event("m/2", reason="mention", indexed_at=at(0)),
    ]
    items = process_aggregation(events)
    assert [i.uri for i in items] == ["m/2"]


def test_output_is_deterministic_regardless_of_input_order():
    events = [
        make_event("l/1", indexed_at=at(0), subject=POST),
        make_event("l/2", indexed_at=at(0), subject=POST),
        make_event("l/3", indexed_at=at(5), subject=POST),
        make_event("m/1", reason="mention", indexed_at=at(5)),
        make_event("m/2", reason="mention", indexed_at=at(5)),
        make_event("f/1", reason="follow", indexed_at=at(days=2)),
        make_event("r/1", reason="repost", indexed_at=at(days=2), subject=POST),
    ]
    expected = process_aggregation(events)

    rng = random.Random(11)
    for _ in range(10):
        shuffled = list(events)
        rng.shuffle(shuffled)
        assert process_aggregation(shuffled) == expected

    # Equal timestamps fall back to URI order
    tied = [i for i in expected if not isinstance(i, AggregatedCluster) and i.indexed_at == at(5)]
    assert [i.uri for i in tied] == ["m/1", "m/2"]


def test_split_chains_respects_exact_window_boundary():
    events = [
        make_event("l/1", indexed_at=at(0) + AGGREGATION_WINDOW),
        make_event("l/2", indexed_at=at(0)),
        make_event("l/3", indexed_at=at(0) - timedelta(seconds=1) - AGGREGATION_WINDOW),
    ]
    chains = split_chains(events)
    assert [[e.uri for e in c] for c in chains] == [["l/1", "l/2"], ["l/3"]]


def test_repeated_uri_counts_once_toward_threshold():
    first = make_event("like/1", indexed_at=at(0), subject=POST, actor_id="did:plc:a")
    second = make_event("like/2", indexed_at=at(5), subject=POST, actor_id="did:plc:b")
    again = make_event("like/1", indexed_at=at(0), subject=POST, actor_id="did:plc:a", is_read=True)

    items = process_aggregation([first, second, again])

    assert not _clusters(items)
    assert [i.uri for i in items] == ["like/2", "like/1"]
    assert items[1].is_read


def test_repeated_uri_appears_once_in_cluster_members():
    events = [
        make_event(f"like/{i}", indexed_at=at(i), subject=POST, actor_id=f"did:plc:{i}")
        for i in range(3)
    ]

    items = process_aggregation(events + events[:2])

    (cluster,) = items
    assert [m.uri for m in cluster.members] == ["like/2", "like/1", "like/0"]
