"""Volatility-adjusted K factor estimation.

Computes sigma (sample standard deviation of consecutive log price ratios),
T (seconds spanned by the lookback window) and K from a bounded window of
price history.

Calibration:
    f(sigma, T) = min(k_coefficient * sigma * sqrt(1 + T / reference_period), k_max)
    K = round(K_BASE * f(sigma, T))

f(0, T) == 0, and f is non-decreasing in both sigma and T.

CRITICAL: All computations use Decimal under a fixed local context so results
are reproducible bit-for-bit. Never use float.
"""

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, localcontext

from koracle.config import VolatilitySettings
from koracle.data.store import PriceHistoryStore
from koracle.exceptions import FixedPointDivisionError
from koracle.fixed_point import check_uint256
from koracle.logging import get_logger
from koracle.models import K_BASE, SIGMA_BASE, PriceObservation, VolatilityEstimate

logger = get_logger(__name__)

#: Significant digits used for every intermediate result.
_PRECISION = 50

_ZERO = Decimal("0")
_ONE = Decimal("1")

ZERO_ESTIMATE = VolatilityEstimate(k=0, sigma=0, t=0)


def price_of(observation: PriceObservation) -> Decimal:
    """Token units per ETH unit for one observation."""
    if observation.eth_amount == 0:
        raise FixedPointDivisionError(
            f"observation {observation.sequence_index} of {observation.token} has zero eth_amount"
        )
    return Decimal(observation.token_amount) / Decimal(observation.eth_amount)


def compute_log_returns(observations: list[PriceObservation]) -> list[Decimal]:
    """Log ratio of each consecutive price pair, oldest first.

    Returns an empty list for fewer than two observations.
    """
    prices = [price_of(obs) for obs in observations]
    return [(curr / prev).ln() for prev, curr in zip(prices, prices[1:])]


def sample_std_dev(values: list[Decimal]) -> Decimal:
    """Sample standard deviation (N-1 denominator).

    Returns Decimal("0") for fewer than two values or when all values are equal.
    """
    if len(values) < 2 or all(v == values[0] for v in values):
        return _ZERO

    n = Decimal(len(values))
    mean = sum(values, _ZERO) / n
    variance = sum(((v - mean) ** 2 for v in values), _ZERO) / (n - _ONE)
    return variance.sqrt()


def calibrate(
    sigma: Decimal,
    elapsed: int,
    k_coefficient: Decimal,
    reference_period: int,
    k_max: Decimal,
) -> Decimal:
    """Map dispersion and elapsed time to the unscaled K ratio f(sigma, T)."""
    if sigma <= _ZERO:
        return _ZERO
    if reference_period <= 0:
        raise FixedPointDivisionError("reference_period must be positive")

    time_factor = (_ONE + Decimal(elapsed) / Decimal(reference_period)).sqrt()
    return min(k_coefficient * sigma * time_factor, k_max)


def estimate_from_observations(
    observations: list[PriceObservation],
    settings: VolatilitySettings,
) -> VolatilityEstimate:
    """Compute {K, sigma, T} for an ordered window of observations."""
    if len(observations) < 2:
        return ZERO_ESTIMATE

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = ROUND_HALF_EVEN

        returns = compute_log_returns(observations)
        sigma = sample_std_dev(returns)
        elapsed = observations[-1].timestamp - observations[0].timestamp

        ratio = calibrate(
            sigma,
            elapsed,
            settings.k_coefficient,
            settings.reference_period_seconds,
            settings.k_max,
        )

        k = int((ratio * K_BASE).quantize(_ONE, rounding=ROUND_HALF_UP))
        sigma_scaled = int((sigma * SIGMA_BASE).quantize(_ONE, rounding=ROUND_HALF_UP))

    return VolatilityEstimate(
        k=check_uint256("k", k),
        sigma=check_uint256("sigma", sigma_scaled),
        t=elapsed,
    )


class VolatilityEstimator:
    """Computes K for a token from its recent price history.

    Args:
        store: Source of price observations.
        settings: Lookback window and calibration parameters.
    """

    def __init__(self, store: PriceHistoryStore, settings: VolatilitySettings) -> None:
        self._store = store
        self._settings = settings

    @property
    def lookback_window(self) -> int:
        return self._settings.lookback_window

    async def compute_k(
        self, token: str, lookback_window: int | None = None
    ) -> VolatilityEstimate:
        """Estimate {K, sigma, T} over the most recent ``lookback_window`` observations.

        Returns a zero estimate when fewer than two observations exist.
        """
        window_size = lookback_window if lookback_window is not None else self.lookback_window
        observations = await self._store.window(token, window_size)
        estimate = estimate_from_observations(observations, self._settings)

        logger.debug(
            "k_computed",
            token=token,
            observations=len(observations),
            k=estimate.k,
            sigma=str(estimate.sigma),
            t=estimate.t,
        )
        return estimate
