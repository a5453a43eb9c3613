"""Reference data cache and its primary feed."""
from reference_cache.cache import CacheSources, ReferenceCache, build_records, synthesize_records
from reference_cache.feed import FeedRefreshResult, ReferenceFeed
from reference_cache.inspection import CacheStats, inspect_cache

__all__ = [
    "CacheSources",
    "ReferenceCache",
    "build_records",
    "synthesize_records",
    "FeedRefreshResult",
    "ReferenceFeed",
    "CacheStats",
    "inspect_cache",
]
