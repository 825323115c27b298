"""Staleness-aware cache of the last computed K per token.

A cached KInfo is served unchanged while ``now - updated_at`` is below the
staleness threshold. Otherwise K is recomputed from the price history,
persisted, and swapped in as a whole record. Appends never invalidate the
cache; staleness is purely time-based.

Callers that must do more work before a recomputed record may be kept use
``refresh``: the candidate is installed only when their block succeeds.

Recomputation is exclusive per token: callers racing past a stale check
serialize on the token's lock, and the second one finds the fresh record
installed by the first.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from koracle.clock import BatchClock
from koracle.config import CacheSettings
from koracle.data.store import KInfoStore
from koracle.logging import get_logger
from koracle.models import KInfo
from koracle.pricing.volatility import VolatilityEstimator

logger = get_logger(__name__)

_EMPTY = KInfo()


class KInfoCache:
    """Per-token KInfo cache backed by durable KInfo records.

    Args:
        estimator: Computes {K, sigma, T} on a miss.
        k_info_store: Durable storage for KInfo records.
        settings: Staleness threshold.
        clock: Shared time source; updated_at comes from it.
    """

    def __init__(
        self,
        estimator: VolatilityEstimator,
        k_info_store: KInfoStore,
        settings: CacheSettings,
        clock: BatchClock,
    ) -> None:
        self._estimator = estimator
        self._k_info_store = k_info_store
        self._settings = settings
        self._clock = clock
        self._entries: dict[str, KInfo] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def staleness_threshold(self) -> int:
        return self._settings.staleness_threshold_seconds

    def _lock_for(self, token: str) -> asyncio.Lock:
        lock = self._locks.get(token)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[token] = lock
        return lock

    async def _load(self, token: str) -> KInfo | None:
        """Cached entry, falling back to the persisted record on first access."""
        entry = self._entries.get(token)
        if entry is None:
            entry = await self._k_info_store.load(token)
            if entry is not None:
                self._entries[token] = entry
        return entry

    def is_fresh(self, entry: KInfo | None, now: int) -> bool:
        return (
            entry is not None
            and entry.computed
            and now - entry.updated_at < self.staleness_threshold
        )

    @asynccontextmanager
    async def refresh(self, token: str) -> AsyncIterator[KInfo]:
        """Yield a fresh KInfo for token, installing a recomputed one on clean exit.

        The token's lock is held for the whole block. A stale or missing record
        is recomputed into a candidate which is persisted and swapped in only
        when the block exits without raising; otherwise the previous record
        stays in place, both in memory and on disk.
        """
        async with self._lock_for(token):
            now = self._clock.now()
            entry = await self._load(token)
            if self.is_fresh(entry, now):
                logger.debug("k_info_cache_hit", token=token, updated_at=entry.updated_at)
                yield entry
                return

            estimate = await self._estimator.compute_k(token)
            candidate = KInfo(k=estimate.k, updated_at=now, sigma=estimate.sigma, t=estimate.t)
            yield candidate
            await self._k_info_store.save(token, candidate)
            self._entries[token] = candidate

        logger.info(
            "k_info_recomputed",
            token=token,
            k=candidate.k,
            sigma=str(candidate.sigma),
            t=candidate.t,
            updated_at=candidate.updated_at,
            previous_updated_at=entry.updated_at if entry is not None else None,
        )

    async def get(self, token: str) -> KInfo:
        """Return a fresh KInfo for token, recomputing it if stale or missing."""
        async with self.refresh(token) as k_info:
            return k_info

    async def peek(self, token: str) -> KInfo:
        """Return the cached KInfo without triggering recomputation.

        A zero record is returned for tokens whose K was never computed.
        """
        entry = await self._load(token)
        return entry if entry is not None else _EMPTY
