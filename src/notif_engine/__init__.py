"""
Notification aggregation and conversation reconstruction.

Raw notifications are normalized, clustered into display bursts, and replies
are grouped under the root post of their conversation as ancestry arrives.
"""

from .types import (
    Reason,
    AGGREGABLE_REASONS,
    Actor,
    NotificationEvent,
    PostFact,
    AggregatedCluster,
    ConversationThread,
    ThreadNode,
)
from .normalizer import NormalizedBatch, normalize_event, normalize_events
from .aggregation import AGGREGATION_WINDOW, process_aggregation, split_chains
from .post_cache import CacheSnapshot, LookupResult, PostFactCache
from .roots import RootResolver, resolve_root, walk_to_root
from .conversations import build_conversations, filter_conversations
from .thread_tree import build_thread_tree
from .enrichment import EnrichmentCoordinator, UriState, get_frontier
from .engine import NotificationEngine
from .config import EngineConfig

__all__ = [
    # Types
    "Reason",
    "AGGREGABLE_REASONS",
    "Actor",
    "NotificationEvent",
    "PostFact",
    "AggregatedCluster",
    "ConversationThread",
    "ThreadNode",
    # Normalizer
    "NormalizedBatch",
    "normalize_event",
    "normalize_events",
    # Clusterer
    "AGGREGATION_WINDOW",
    "process_aggregation",
    "split_chains",
    # Cache
    "CacheSnapshot",
    "LookupResult",
    "PostFactCache",
    # Roots and conversations
    "RootResolver",
    "resolve_root",
    "walk_to_root",
    "build_conversations",
    "filter_conversations",
    "build_thread_tree",
    # Enrichment
    "EnrichmentCoordinator",
    "UriState",
    "get_frontier",
    # Facade
    "NotificationEngine",
    "EngineConfig",
]
