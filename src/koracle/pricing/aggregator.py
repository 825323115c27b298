"""Current price derivation from the latest observation.

normalized_price follows the display convention of the pricing controller:
    price = erc20_amount * 10**18 / eth_amount / 10**decimals
computed with integer floor division at each step. The result is for
display only and is never stored.
"""

from koracle import fixed_point
from koracle.data.store import PriceHistoryStore
from koracle.models import CurrentPriceView
from koracle.tokens import TokenMetadataProvider

#: One ETH in wei.
ETHER = 10**18


def normalized_price(view: CurrentPriceView, decimals: int) -> int:
    """Whole tokens per ETH for a price view."""
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    per_ether = fixed_point.mul_div(view.erc20_amount, ETHER, view.eth_amount)
    return fixed_point.div(per_ether, 10**decimals)


class PriceAggregator:
    """Read-only view over the latest observation of each token."""

    def __init__(
        self,
        store: PriceHistoryStore,
        token_metadata: TokenMetadataProvider | None = None,
    ) -> None:
        self._store = store
        self._token_metadata = token_metadata

    async def current_price(self, token: str) -> CurrentPriceView:
        """Latest {eth_amount, erc20_amount} pair.

        Raises EmptyHistoryError (from the store) if the token has no history.
        """
        latest = await self._store.latest(token)
        return CurrentPriceView(eth_amount=latest.eth_amount, erc20_amount=latest.token_amount)

    async def describe(self, token: str) -> dict:
        """Display summary of the current price using token metadata.

        Raises UnknownTokenError if the token has no registered metadata and
        RuntimeError if no metadata provider is configured.
        """
        if self._token_metadata is None:
            raise RuntimeError("No token metadata provider configured")

        view = await self.current_price(token)
        decimals = await self._token_metadata.decimals(token)
        symbol = await self._token_metadata.symbol(token)
        price = normalized_price(view, decimals)
        return {
            "token": token,
            "symbol": symbol,
            "decimals": decimals,
            "eth_amount": view.eth_amount,
            "erc20_amount": view.erc20_amount,
            "price": price,
            "display": f"{price} {symbol}/ETH",
        }
