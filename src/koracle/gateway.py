"""Query-facing facade of the oracle.

OracleGateway composes the price history store, the aggregator and the
KInfo cache, and enforces the paid-query preconditions. It is the only
component exposed to callers (directly or through the HTTP API).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from koracle.exceptions import InsufficientPaymentError, ValidationError
from koracle.fixed_point import check_uint256
from koracle.logging import get_logger
from koracle.models import CurrentPriceView, KInfo, OracleQueried, PriceObservation, QueryResult

if TYPE_CHECKING:
    from koracle.accounting import AccountingCollaborator
    from koracle.clock import BatchClock
    from koracle.config import GatewaySettings
    from koracle.data.store import PriceHistoryStore
    from koracle.events import NotificationChannel
    from koracle.pricing.aggregator import PriceAggregator
    from koracle.pricing.kinfo_cache import KInfoCache

logger = get_logger(__name__)


class OracleGateway:
    """Facade for price writes, price reads and paid K queries.

    Args:
        store: Append-only price history.
        aggregator: Current price view.
        cache: KInfo cache (recomputes K on staleness).
        channel: Receives one OracleQueried record per paid query.
        accounting: Receives query fees once the query succeeds.
        clock: Default timestamp source for observations.
        settings: Minimum fee and seeding limit.
    """

    def __init__(
        self,
        store: PriceHistoryStore,
        aggregator: PriceAggregator,
        cache: KInfoCache,
        channel: NotificationChannel,
        accounting: AccountingCollaborator,
        clock: BatchClock,
        settings: GatewaySettings,
    ) -> None:
        self._store = store
        self._aggregator = aggregator
        self._cache = cache
        self._channel = channel
        self._accounting = accounting
        self._clock = clock
        self._settings = settings

    @property
    def minimum_fee(self) -> int:
        return self._settings.minimum_fee

    @property
    def max_seed_count(self) -> int:
        return self._settings.max_seed_count

    async def add_observation(
        self,
        token: str,
        eth_amount: int,
        token_amount: int,
        timestamp: int | None = None,
    ) -> PriceObservation:
        """Record a price observation.

        Without an explicit timestamp the shared batch clock tick is used.
        """
        if timestamp is None:
            timestamp = self._clock.now()
        observation = await self._store.append(token, eth_amount, token_amount, timestamp)
        logger.info(
            "observation_added",
            token=token,
            sequence_index=observation.sequence_index,
            timestamp=observation.timestamp,
        )
        return observation

    async def get_price_length(self, token: str) -> int:
        return await self._store.length(token)

    async def check_price_now(self, token: str) -> CurrentPriceView:
        """Latest price pair for token. Free, read-only."""
        return await self._aggregator.current_price(token)

    async def price_display(self, token: str) -> dict:
        """Human-readable current price (requires token metadata)."""
        return await self._aggregator.describe(token)

    async def query_oracle(self, token: str, account: str, payment: int) -> QueryResult:
        """Paid query: return K, sigma, T and the current price pair.

        Steps:
        1. Reject payments below the minimum fee (no state touched).
        2. Read the current price; an empty history fails here, before the
           cache can be touched.
        3. Take a fresh KInfo from the cache, recomputing a candidate if stale.
        4. Hand the payment to the accounting collaborator. The candidate is
           installed only once this succeeds.
        5. Publish the OracleQueried record.

        Raises:
            InsufficientPaymentError: payment < minimum_fee.
            ValidationError: empty account or malformed payment.
            EmptyHistoryError: token has no observations.
        """
        check_uint256("payment", payment)
        if payment < self.minimum_fee:
            logger.warning(
                "insufficient_payment",
                token=token,
                account=account,
                payment=str(payment),
                minimum_fee=str(self.minimum_fee),
            )
            raise InsufficientPaymentError(payment, self.minimum_fee)
        if not isinstance(account, str) or not account:
            raise ValidationError("account must be a non-empty string")

        price_view = await self._aggregator.current_price(token)
        async with self._cache.refresh(token) as k_info:
            result = QueryResult(
                k=k_info.k,
                sigma=k_info.sigma,
                t=k_info.t,
                eth_amount=price_view.eth_amount,
                erc20_amount=price_view.erc20_amount,
            )
            await self._accounting.record_fee(token, account, payment)

        await self._channel.publish(
            OracleQueried(
                token=token,
                account=account,
                payment=payment,
                updated_at=k_info.updated_at,
                result=result,
            )
        )
        return result

    async def get_k_info(self, token: str) -> KInfo:
        """Cached KInfo for token; never triggers recomputation."""
        return await self._cache.peek(token)

    async def status(self) -> dict:
        """Per-token series length and cached K, for operators."""
        lengths = await self._store.tokens()
        tokens = []
        for token, length in lengths.items():
            k_info = await self._cache.peek(token)
            tokens.append({
                "token": token,
                "price_length": length,
                "k": k_info.k,
                "k_updated_at": k_info.updated_at,
            })
        return {
            "tokens": tokens,
            "minimum_fee": self.minimum_fee,
            "staleness_threshold_seconds": self._cache.staleness_threshold,
        }
