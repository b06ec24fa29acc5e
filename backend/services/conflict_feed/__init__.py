from .aggregator import ConflictFeedService, build_conflict_feed_service
from .cache import CacheEntry, SingleFlight, TTLCache
from .coordinator import ALL_EVENTS_KEY, CRITICAL_EVENTS_KEY, FeedSnapshot, FetchCoordinator
from .deduplicator import DedupPolicy, dedupe, dedupe_key
from .errors import ConfigurationError, ConflictFeedError, SourceFetchError, SourceNotConfiguredError
from .merger import merge_and_sort
from .normalizer import NormalizationReport, Normalizer, normalize
from .severity import classify, global_threat_level, score

__all__ = [
    "ALL_EVENTS_KEY",
    "CRITICAL_EVENTS_KEY",
    "CacheEntry",
    "ConfigurationError",
    "ConflictFeedError",
    "ConflictFeedService",
    "DedupPolicy",
    "FeedSnapshot",
    "FetchCoordinator",
    "NormalizationReport",
    "Normalizer",
    "SingleFlight",
    "SourceFetchError",
    "SourceNotConfiguredError",
    "TTLCache",
    "build_conflict_feed_service",
    "classify",
    "dedupe",
    "dedupe_key",
    "global_threat_level",
    "merge_and_sort",
    "normalize",
    "score",
]
