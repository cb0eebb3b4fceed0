"""Cache Package for the Loan Application Service."""

from .redis_client import RedisClient, get_redis_client
from .cache_patterns import (
    CacheKeyBuilder,
    CacheMetrics,
    get_cache_metrics,
    LOAN_TTL,
)
from .caching_repository import CachingLoanRepository

__all__ = [
    'RedisClient',
    'get_redis_client',
    'CacheKeyBuilder',
    'CacheMetrics',
    'get_cache_metrics',
    'LOAN_TTL',
    'CachingLoanRepository',
]
