"""Tests for the K factor estimator.

Pure-function tests build observation windows directly; the estimator
tests go through a real store.
"""

from decimal import Decimal

import pytest

from koracle.config import VolatilitySettings
from koracle.exceptions import FixedPointDivisionError
from koracle.models import K_BASE, PriceObservation, VolatilityEstimate
from koracle.pricing.volatility import (
    ZERO_ESTIMATE,
    VolatilityEstimator,
    calibrate,
    compute_log_returns,
    estimate_from_observations,
    sample_std_dev,
)

from conftest import START_TIME, TOKEN


def _series(
    token_amounts: list[int],
    timestamps: list[int] | None = None,
    eth_amount: int = 10**18,
) -> list[PriceObservation]:
    """Build an ordered observation window."""
    if timestamps is None:
        timestamps = [START_TIME] * len(token_amounts)
    return [
        PriceObservation(
            token=TOKEN,
            sequence_index=i,
            eth_amount=eth_amount,
            token_amount=amount,
            timestamp=ts,
        )
        for i, (amount, ts) in enumerate(zip(token_amounts, timestamps))
    ]


@pytest.fixture
def uncapped() -> VolatilitySettings:
    """Calibration with a cap high enough never to bind in these tests."""
    return VolatilitySettings(k_max=Decimal("1000"))


class TestSampleStdDev:
    def test_fewer_than_two_values(self) -> None:
        assert sample_std_dev([]) == Decimal("0")
        assert sample_std_dev([Decimal("0.5")]) == Decimal("0")

    def test_identical_values(self) -> None:
        assert sample_std_dev([Decimal("0.01")] * 5) == Decimal("0")

    def test_uses_n_minus_one(self) -> None:
        """values 1,2,3,4: mean 2.5, squared deviations sum 5, /3."""
        values = [Decimal("1"), Decimal("2"), Decimal("3"), Decimal("4")]
        expected = (Decimal("5") / Decimal("3")).sqrt()
        assert sample_std_dev(values) == expected


class TestLogReturns:
    def test_one_return_per_consecutive_pair(self) -> None:
        returns = compute_log_returns(_series([100, 200, 100]))
        assert returns == [Decimal(2).ln(), Decimal("0.5").ln()]

    def test_price_is_scale_invariant(self) -> None:
        """Only the token/eth ratio matters, not the absolute amounts."""
        a = compute_log_returns(_series([100, 150], eth_amount=1))
        b = compute_log_returns(_series([1000, 1500], eth_amount=10))
        assert a == b

    def test_zero_eth_amount_is_division_error(self) -> None:
        with pytest.raises(FixedPointDivisionError):
            compute_log_returns(_series([100, 200], eth_amount=0))


class TestCalibrate:
    def test_zero_sigma_gives_zero(self) -> None:
        for elapsed in (0, 60, 10**9):
            assert calibrate(Decimal("0"), elapsed, Decimal("1"), 3600, Decimal("1")) == 0

    def test_no_elapsed_time_is_plain_sigma(self) -> None:
        assert calibrate(Decimal("0.2"), 0, Decimal("1"), 3600, Decimal("1")) == Decimal("0.2")

    def test_reference_period_doubles_variance(self) -> None:
        result = calibrate(Decimal("0.2"), 3600, Decimal("1"), 3600, Decimal("10"))
        assert result == Decimal("0.2") * Decimal(2).sqrt()

    def test_capped_at_k_max(self) -> None:
        assert calibrate(Decimal("5"), 0, Decimal("1"), 3600, Decimal("1")) == Decimal("1")

    def test_invalid_reference_period(self) -> None:
        with pytest.raises(FixedPointDivisionError):
            calibrate(Decimal("0.1"), 10, Decimal("1"), 0, Decimal("1"))


class TestEstimateFromObservations:
    """Zero cases, known values and the monotonicity contract."""

    def test_fewer_than_two_observations(self) -> None:
        settings = VolatilitySettings()
        assert estimate_from_observations([], settings) == ZERO_ESTIMATE
        assert estimate_from_observations(_series([100]), settings) == ZERO_ESTIMATE

    def test_constant_price_ratio_gives_zero(self) -> None:
        """Every step doubles the price: identical returns, no dispersion."""
        estimate = estimate_from_observations(
            _series([100, 200, 400, 800], [START_TIME, START_TIME + 10, START_TIME + 20, START_TIME + 30]),
            VolatilitySettings(),
        )
        assert estimate.sigma == 0
        assert estimate.k == 0
        assert estimate.t == 30

    def test_flat_price_gives_zero(self) -> None:
        estimate = estimate_from_observations(_series([500] * 6), VolatilitySettings())
        assert (estimate.k, estimate.sigma) == (0, 0)

    def test_known_value(self) -> None:
        """Returns ln2 and -ln2: sigma = sqrt(2) * ln2 ~= 0.9802581434685472."""
        estimate = estimate_from_observations(_series([100, 200, 100]), VolatilitySettings())

        assert abs(estimate.sigma - 980_258_143_468_547_192) < 10**6
        assert estimate.t == 0
        assert estimate.k == 98_026

    def test_cap_limits_k_to_k_base(self) -> None:
        estimate = estimate_from_observations(
            _series([100, 200, 100], [START_TIME, START_TIME + 1800, START_TIME + 3600]),
            VolatilitySettings(),
        )
        assert estimate.k == K_BASE
        assert estimate.t == 3600

    def test_deterministic(self, uncapped: VolatilitySettings) -> None:
        window = _series([3_255_000_000, 3_300_000_017, 3_190_000_003, 3_401_000_000])
        assert estimate_from_observations(window, uncapped) == estimate_from_observations(
            list(window), uncapped
        )

    def test_more_dispersion_never_lowers_k(self, uncapped: VolatilitySettings) -> None:
        timestamps = [START_TIME + 60 * i for i in range(5)]
        calm = estimate_from_observations(_series([1000, 1010, 1000, 1010, 1000], timestamps), uncapped)
        wild = estimate_from_observations(_series([1000, 1100, 1000, 1100, 1000], timestamps), uncapped)

        assert calm.t == wild.t
        assert wild.sigma > calm.sigma
        assert wild.k > calm.k

    def test_more_elapsed_time_never_lowers_k(self, uncapped: VolatilitySettings) -> None:
        amounts = [1000, 1050, 990, 1030]
        ks = []
        for step in (0, 60, 600, 6000):
            timestamps = [START_TIME + step * i for i in range(len(amounts))]
            ks.append(estimate_from_observations(_series(amounts, timestamps), uncapped).k)

        assert ks == sorted(ks)
        assert ks[-1] > ks[0]


class TestVolatilityEstimator:
    """compute_k reads the lookback window from the store."""

    @pytest.mark.asyncio
    async def test_unseen_token_is_zero(self, components) -> None:
        estimator: VolatilityEstimator = components["estimator"]
        assert await estimator.compute_k("0xunseen") == ZERO_ESTIMATE

    @pytest.mark.asyncio
    async def test_lookback_limits_window(self, components, uncapped) -> None:
        store = components["store"]
        estimator = VolatilityEstimator(store, uncapped)
        # volatile head, flat tail
        for i, amount in enumerate([100, 300, 100, 500, 500, 500]):
            await store.append(TOKEN, 10**18, amount, START_TIME + i)

        tail = await estimator.compute_k(TOKEN, lookback_window=3)
        full = await estimator.compute_k(TOKEN, lookback_window=6)

        assert tail == VolatilityEstimate(k=0, sigma=0, t=2)
        assert full.k > 0
        assert full.t == 5

    @pytest.mark.asyncio
    async def test_default_lookback_from_settings(self, components) -> None:
        store = components["store"]
        estimator = VolatilityEstimator(store, VolatilitySettings(lookback_window=2))
        for i, amount in enumerate([100, 300, 100]):
            await store.append(TOKEN, 10**18, amount, START_TIME + i)

        estimate = await estimator.compute_k(TOKEN)
        # two observations: one return, no dispersion
        assert estimate == VolatilityEstimate(k=0, sigma=0, t=1)
