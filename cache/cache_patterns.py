"""Cache key layout, TTLs and hit/miss metrics for the loan cache."""

import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict

from config import get_cache_config

LOAN_TTL = get_cache_config().loan_ttl


class CacheKeyBuilder:
    """Three independent namespaces, one per cached result shape."""

    PREFIX = 'loan'

    @classmethod
    def build(cls, *parts) -> str:
        return ':'.join([cls.PREFIX, *(str(p) for p in parts)])

    @classmethod
    def loan(cls, loan_id) -> str:
        return cls.build(loan_id)

    @classmethod
    def identity(cls, identity) -> str:
        return cls.build('identity', identity)

    @classmethod
    def history(cls, loan_id) -> str:
        return cls.build('history', loan_id)


class CacheMetrics:
    """In-process counters for cache telemetry (hits, misses, errors, invalidations).

    Counters live in memory rather than in Redis so that recording a metric
    can never turn into another cache fault.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._started_at = datetime.now(tz=timezone.utc)
        self._counters: Dict[str, Dict[str, int]] = {
            'hits': defaultdict(int),
            'misses': defaultdict(int),
            'errors': defaultdict(int),
            'invalidations': defaultdict(int),
        }

    def _incr(self, kind: str, operation: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[kind][operation] += amount

    def record_hit(self, operation: str = 'general') -> None:
        self._incr('hits', operation)

    def record_miss(self, operation: str = 'general') -> None:
        self._incr('misses', operation)

    def record_error(self, operation: str = 'general') -> None:
        self._incr('errors', operation)

    def record_invalidation(self, operation: str = 'general', keys_invalidated: int = 1) -> None:
        self._incr('invalidations', operation, keys_invalidated)

    def count(self, kind: str, operation: str = None) -> int:
        with self._lock:
            counter = self._counters[kind]
            if operation is None:
                return sum(counter.values())
            return counter.get(operation, 0)

    def get_current_stats(self) -> dict:
        with self._lock:
            snapshot = {kind: dict(values) for kind, values in self._counters.items()}

        hits = sum(snapshot['hits'].values())
        misses = sum(snapshot['misses'].values())
        requests = hits + misses
        return {
            'since': self._started_at.isoformat(),
            'totals': {
                'hits': hits,
                'misses': misses,
                'errors': sum(snapshot['errors'].values()),
                'invalidations': sum(snapshot['invalidations'].values()),
                'requests': requests,
                'hit_ratio': round(hits / requests * 100, 2) if requests > 0 else 0,
            },
            'by_operation': snapshot,
        }

    def reset_metrics(self) -> None:
        with self._lock:
            for values in self._counters.values():
                values.clear()
            self._started_at = datetime.now(tz=timezone.utc)


_metrics_instance = None


def get_cache_metrics() -> CacheMetrics:
    """Get singleton CacheMetrics instance."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = CacheMetrics()
    return _metrics_instance
