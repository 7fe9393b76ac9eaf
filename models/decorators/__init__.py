"""
Composable decorators adding one cross-cutting concern to an LLM adapter.
"""

from models.decorators.base import DelegatingLLM
from models.decorators.caching import (
    CachingLLM,
    InMemoryResponseCache,
    RedisResponseCache,
    ResponseCache,
)
from models.decorators.call_logging import LoggingLLM
from models.decorators.metrics import GatewayMetrics, MetricsLLM, get_default_metrics
from models.decorators.rate_limiting import (
    InMemoryRateLimiter,
    RateLimitedLLM,
    RateLimiter,
    RedisRateLimiter,
)
from models.decorators.retry import RetryingLLM, is_retryable

__all__ = [
    "DelegatingLLM",
    "CachingLLM",
    "ResponseCache",
    "InMemoryResponseCache",
    "RedisResponseCache",
    "LoggingLLM",
    "MetricsLLM",
    "GatewayMetrics",
    "get_default_metrics",
    "RateLimitedLLM",
    "RateLimiter",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "RetryingLLM",
    "is_retryable",
]
