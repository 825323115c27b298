"""Tests for the staleness-aware KInfo cache."""

import asyncio

import pytest

from koracle.config import CacheSettings, VolatilitySettings
from koracle.models import KInfo, VolatilityEstimate
from koracle.pricing.kinfo_cache import KInfoCache
from koracle.pricing.volatility import VolatilityEstimator

from conftest import START_TIME, TOKEN


class CountingEstimator(VolatilityEstimator):
    """Estimator that counts compute_k calls and yields to the loop mid-way."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def compute_k(self, token: str, lookback_window: int | None = None) -> VolatilityEstimate:
        self.calls += 1
        await asyncio.sleep(0)
        return await super().compute_k(token, lookback_window)


@pytest.fixture
def estimator(components) -> CountingEstimator:
    return CountingEstimator(components["store"], VolatilitySettings())


@pytest.fixture
def cache(components, estimator, clock) -> KInfoCache:
    return KInfoCache(
        estimator,
        components["k_info_store"],
        CacheSettings(staleness_threshold_seconds=60),
        clock,
    )


async def _append_volatile(store, start: int = START_TIME) -> None:
    for i, amount in enumerate([100, 120, 95, 130]):
        await store.append(TOKEN, 10**18, amount, start + i)


class TestGet:
    @pytest.mark.asyncio
    async def test_miss_computes_and_stamps_now(self, components, cache, estimator) -> None:
        await _append_volatile(components["store"])

        k_info = await cache.get(TOKEN)

        assert estimator.calls == 1
        assert k_info.updated_at == START_TIME
        assert k_info.k > 0
        assert k_info.t == 3

    @pytest.mark.asyncio
    async def test_hit_within_threshold(self, components, cache, estimator, manual_time) -> None:
        await _append_volatile(components["store"])
        first = await cache.get(TOKEN)

        manual_time.advance(59)
        await components["store"].append(TOKEN, 10**18, 500, START_TIME + 59)
        second = await cache.get(TOKEN)

        assert second == first
        assert estimator.calls == 1

    @pytest.mark.asyncio
    async def test_recompute_after_threshold(self, components, cache, estimator, manual_time) -> None:
        await _append_volatile(components["store"])
        first = await cache.get(TOKEN)

        manual_time.advance(60)
        await components["store"].append(TOKEN, 10**18, 500, START_TIME + 60)
        second = await cache.get(TOKEN)

        assert estimator.calls == 2
        assert second.updated_at == START_TIME + 60
        assert second.updated_at > first.updated_at
        assert second.t == START_TIME + 60 - START_TIME

    @pytest.mark.asyncio
    async def test_record_is_persisted(self, components, cache) -> None:
        await _append_volatile(components["store"])
        k_info = await cache.get(TOKEN)

        assert await components["k_info_store"].load(TOKEN) == k_info

    @pytest.mark.asyncio
    async def test_persisted_record_serves_new_cache(self, components, cache, estimator, clock) -> None:
        """A fresh persisted record is reused after a restart."""
        await _append_volatile(components["store"])
        k_info = await cache.get(TOKEN)

        restarted_estimator = CountingEstimator(components["store"], VolatilitySettings())
        restarted = KInfoCache(
            restarted_estimator,
            components["k_info_store"],
            CacheSettings(staleness_threshold_seconds=60),
            clock,
        )

        assert await restarted.get(TOKEN) == k_info
        assert restarted_estimator.calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_stale_gets_recompute_once(self, components, cache, estimator) -> None:
        await _append_volatile(components["store"])

        results = await asyncio.gather(*(cache.get(TOKEN) for _ in range(10)))

        assert estimator.calls == 1
        assert len(set(results)) == 1

    @pytest.mark.asyncio
    async def test_failed_save_leaves_cache_unchanged(self, components, cache, manual_time) -> None:
        await _append_volatile(components["store"])
        first = await cache.get(TOKEN)
        manual_time.advance(120)

        async def _broken_save(token: str, k_info: KInfo) -> None:
            raise RuntimeError("disk full")

        components["k_info_store"].save = _broken_save
        with pytest.raises(RuntimeError):
            await cache.get(TOKEN)

        assert await cache.peek(TOKEN) == first


class TestRefresh:
    @pytest.mark.asyncio
    async def test_candidate_installed_on_clean_exit(self, components, cache, manual_time) -> None:
        await _append_volatile(components["store"])
        manual_time.advance(5)

        async with cache.refresh(TOKEN) as candidate:
            assert await cache.peek(TOKEN) == KInfo()

        assert candidate.updated_at == START_TIME + 5
        assert await cache.peek(TOKEN) == candidate
        assert await components["k_info_store"].load(TOKEN) == candidate

    @pytest.mark.asyncio
    async def test_candidate_discarded_when_block_raises(
        self, components, cache, manual_time
    ) -> None:
        await _append_volatile(components["store"])
        first = await cache.get(TOKEN)
        manual_time.advance(120)

        with pytest.raises(RuntimeError):
            async with cache.refresh(TOKEN) as candidate:
                assert candidate.updated_at == START_TIME + 120
                raise RuntimeError("caller failed")

        assert await cache.peek(TOKEN) == first
        assert await components["k_info_store"].load(TOKEN) == first

    @pytest.mark.asyncio
    async def test_fresh_entry_is_yielded_without_recompute(
        self, components, cache, estimator
    ) -> None:
        await _append_volatile(components["store"])
        first = await cache.get(TOKEN)

        async with cache.refresh(TOKEN) as k_info:
            pass

        assert k_info == first
        assert estimator.calls == 1


class TestPeek:
    @pytest.mark.asyncio
    async def test_never_computed_is_zero_record(self, cache, estimator) -> None:
        k_info = await cache.peek(TOKEN)

        assert k_info == KInfo(k=0, updated_at=0)
        assert not k_info.computed
        assert estimator.calls == 0

    @pytest.mark.asyncio
    async def test_peek_does_not_recompute_stale_entry(
        self, components, cache, estimator, manual_time
    ) -> None:
        await _append_volatile(components["store"])
        first = await cache.get(TOKEN)
        manual_time.advance(3600)

        assert await cache.peek(TOKEN) == first
        assert estimator.calls == 1
