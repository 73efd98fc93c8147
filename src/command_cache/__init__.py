"""
Command Response Cache
Bounded TTL store with FIFO eviction and a memory budget,
canonical cache keys, and the cached response union.
"""

from .key_codec import make_cache_key, normalize_options
from .responses import (
    CachedResponse,
    MultiStepResponse,
    SingleResponse,
    Step,
    StepKind,
    coerce_handler_result,
    serialize_response,
)
from .store import CacheEntry, CacheStore

__all__ = [
    'CacheEntry',
    'CacheStore',
    'CachedResponse',
    'MultiStepResponse',
    'SingleResponse',
    'Step',
    'StepKind',
    'coerce_handler_result',
    'make_cache_key',
    'normalize_options',
    'serialize_response',
]
