"""Cache-aside decorator over the loan persistence port.

The store is the system of record. Point lookups, identity lists and history
are served from Redis when possible; writes go to the store first and then
refresh or evict the affected keys. The cache is best-effort: any fault
(connection, timeout, bad payload) is logged, counted and treated as a miss
on reads or a no-op on writes, so it never reaches the caller.
"""

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from cache.cache_patterns import LOAN_TTL, CacheKeyBuilder, CacheMetrics, get_cache_metrics
from loans.domain import ApplicantIdentity, LoanApplication, LoanId
from loans.ports import LoanRepositoryPort


def _encode_list(loans: List[LoanApplication]) -> list:
    return [loan.to_dict() for loan in loans]


def _decode_list(payload: Any) -> List[LoanApplication]:
    if not isinstance(payload, list):
        raise ValueError(f"expected a list payload, got {type(payload).__name__}")
    return [LoanApplication.from_dict(item) for item in payload]


class CachingLoanRepository(LoanRepositoryPort):
    def __init__(
        self,
        delegate: LoanRepositoryPort,
        cache,
        ttl: int = LOAN_TTL,
        metrics: Optional[CacheMetrics] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            delegate: the durable store adapter.
            cache: client exposing get_json/set_json/delete; any call may raise.
            ttl: fixed time-to-live in seconds for every entry.
            metrics: counters for hits/misses/errors, shared by default.
            logger: injected logger, defaults to this module's logger.
        """
        self._delegate = delegate
        self._cache = cache
        self._ttl = ttl
        self._metrics = metrics or get_cache_metrics()
        self._log = logger or logging.getLogger(__name__)

    # -- reads ---------------------------------------------------------------

    def find_by_id(self, loan_id: LoanId) -> Optional[LoanApplication]:
        return self._cache_aside(
            'find_by_id',
            CacheKeyBuilder.loan(loan_id),
            lambda: self._delegate.find_by_id(loan_id),
            encode=lambda loan: loan.to_dict(),
            decode=LoanApplication.from_dict,
        )

    def find_by_applicant_identity(self, identity: ApplicantIdentity) -> Optional[List[LoanApplication]]:
        return self._cache_aside(
            'find_by_applicant_identity',
            CacheKeyBuilder.identity(identity.value),
            lambda: self._delegate.find_by_applicant_identity(identity),
            encode=_encode_list,
            decode=_decode_list,
        )

    def find_history(self, loan_id: LoanId) -> Optional[List[LoanApplication]]:
        return self._cache_aside(
            'find_history',
            CacheKeyBuilder.history(loan_id),
            lambda: self._delegate.find_history(loan_id),
            encode=_encode_list,
            decode=_decode_list,
        )

    def find_all(self) -> List[LoanApplication]:
        return self._delegate.find_all()

    def find_by_criteria(
        self,
        identity: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[List[LoanApplication]]:
        # Filter combinations are unbounded, so criteria results are never cached
        return self._delegate.find_by_criteria(identity, start, end)

    # -- writes --------------------------------------------------------------

    def save(self, loan: LoanApplication) -> LoanApplication:
        saved = self._delegate.save(loan)
        point_key = CacheKeyBuilder.loan(saved.id)
        stale_keys = [
            CacheKeyBuilder.identity(saved.applicant_identity.value),
            CacheKeyBuilder.history(saved.id),
        ]
        # A point key that could not be refreshed must not keep the old value
        if not self._write('save', point_key, saved.to_dict):
            stale_keys.insert(0, point_key)
        self._evict('save', *stale_keys)
        return saved

    def delete_by_id(self, loan_id: LoanId) -> None:
        existing = self.find_by_id(loan_id)
        self._delegate.delete_by_id(loan_id)

        keys = [CacheKeyBuilder.loan(loan_id), CacheKeyBuilder.history(loan_id)]
        if existing is not None:
            keys.append(CacheKeyBuilder.identity(existing.applicant_identity.value))
        self._evict('delete_by_id', *keys)

    # -- cache primitives, all fault-absorbing --------------------------------

    def _cache_aside(self, operation: str, key: str, fetch_fn: Callable[[], Any],
                     encode: Callable[[Any], Any], decode: Callable[[Any], Any]):
        cached = self._read(operation, key, decode)
        if cached is not None:
            return cached

        data = fetch_fn()
        if data is not None:
            self._write(operation, key, lambda: encode(data))
        return data

    def _read(self, operation: str, key: str, decode: Callable[[Any], Any]):
        try:
            payload = self._cache.get_json(key)
            if payload is None:
                self._log.debug(f"Cache MISS: {key}")
                self._metrics.record_miss(operation)
                return None
            value = decode(payload)
        except Exception as e:
            self._log.warning(f"Error reading from cache for key {key}. Proceeding to store: {e}")
            self._metrics.record_error(operation)
            self._metrics.record_miss(operation)
            return None
        self._log.debug(f"Cache HIT: {key}")
        self._metrics.record_hit(operation)
        return value

    def _write(self, operation: str, key: str, payload_fn: Callable[[], Any]) -> bool:
        try:
            self._cache.set_json(key, payload_fn(), self._ttl)
        except Exception as e:
            self._log.warning(f"Error writing to cache for key {key}: {e}")
            self._metrics.record_error(operation)
            return False
        return True

    def _evict(self, operation: str, *keys: str) -> None:
        # One call per key so a failure on one key does not skip the others
        for key in keys:
            try:
                self._cache.delete(key)
            except Exception as e:
                self._log.warning(f"Error evicting cache key {key}: {e}")
                self._metrics.record_error(operation)
                continue
            self._log.debug(f"Cache INVALIDATE: {key}")
            self._metrics.record_invalidation(operation)
