"""Fetch utilities - retries, caching, request de-duplication."""

from .caching import (
    CacheEntry,
    InFlightRequests,
    ResponseCache,
    build_cache_key,
    serialize_params,
)
from .retries import RetryConfig, retry_async

__all__ = [
    "CacheEntry",
    "InFlightRequests",
    "ResponseCache",
    "RetryConfig",
    "build_cache_key",
    "retry_async",
    "serialize_params",
]
