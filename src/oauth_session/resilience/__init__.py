"""
Resilience patterns module.

Components:
    - RequestCoalescer: one in-flight execution shared by concurrent callers
    - RetryConfig: Exponential backoff configuration
    - retry_async / @with_retry_async: kind-aware retry with jitter
"""

from .coalescer import RequestCoalescer
from .retry import (
    DEFAULT_RETRY,
    NO_RETRY,
    RetryConfig,
    RetryStats,
    retry_async,
    with_retry_async,
)

__all__ = [
    # Coalescing
    "RequestCoalescer",
    # Retry
    "RetryConfig",
    "RetryStats",
    "retry_async",
    "with_retry_async",
    "DEFAULT_RETRY",
    "NO_RETRY",
]
