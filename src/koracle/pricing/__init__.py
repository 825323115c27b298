"""Pricing components: current price view, volatility estimation and the K cache."""

from koracle.pricing.aggregator import PriceAggregator, normalized_price
from koracle.pricing.kinfo_cache import KInfoCache
from koracle.pricing.volatility import (
    VolatilityEstimator,
    calibrate,
    compute_log_returns,
    estimate_from_observations,
    sample_std_dev,
)

__all__ = [
    "KInfoCache",
    "PriceAggregator",
    "VolatilityEstimator",
    "calibrate",
    "compute_log_returns",
    "estimate_from_observations",
    "normalized_price",
    "sample_std_dev",
]
