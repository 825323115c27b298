"""Core data models for the K-factor price oracle.

Amounts are unsigned 256-bit integers held as Python int. K is an integer
scaled by K_BASE and sigma an integer scaled by SIGMA_BASE; neither is ever
stored as float.
"""

from dataclasses import dataclass

#: Scale factor for K (K / K_BASE is the ratio consumed by the pricing controller).
K_BASE = 100_000

#: Scale factor for sigma.
SIGMA_BASE = 10**18

MAX_UINT256 = 2**256 - 1


@dataclass(frozen=True)
class PriceObservation:
    """One recorded (eth_amount, token_amount, timestamp) triple.

    Addressed by (token, sequence_index); immutable once stored.
    """

    token: str
    sequence_index: int
    eth_amount: int
    token_amount: int
    timestamp: int


@dataclass(frozen=True)
class CurrentPriceView:
    """Most recent price pair for a token."""

    eth_amount: int
    erc20_amount: int


@dataclass(frozen=True)
class VolatilityEstimate:
    """Output of the volatility estimator."""

    k: int  # scaled by K_BASE
    sigma: int  # scaled by SIGMA_BASE
    t: int  # seconds spanned by the lookback window


@dataclass(frozen=True)
class KInfo:
    """Cached K for a token together with the statistics that produced it.

    Replaced as a whole on every recomputation, never mutated in place.
    updated_at == 0 means K has never been computed for the token.
    """

    k: int = 0
    updated_at: int = 0
    sigma: int = 0
    t: int = 0

    @property
    def computed(self) -> bool:
        return self.updated_at > 0


@dataclass(frozen=True)
class QueryResult:
    """Transient result of a paid oracle query."""

    k: int
    sigma: int
    t: int
    eth_amount: int
    erc20_amount: int


@dataclass(frozen=True)
class OracleQueried:
    """Audit record published on the notification channel for every paid query."""

    token: str
    account: str
    payment: int
    updated_at: int
    result: QueryResult
