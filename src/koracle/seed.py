"""Seed a token with a steadily rising ETH price.

Each appended observation keeps eth_amount fixed and scales token_amount
by numerator/denominator (integer floor) for the next one, so more tokens
are needed per ETH at every step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from koracle.logging import get_logger

if TYPE_CHECKING:
    from koracle.gateway import OracleGateway
    from koracle.models import PriceObservation

logger = get_logger(__name__)

DEFAULT_ETH_AMOUNT = 10 * 10**18
DEFAULT_TOKEN_AMOUNT = 3_255_000_000


async def seed_rising_prices(
    gateway: OracleGateway,
    token: str,
    eth_amount: int = DEFAULT_ETH_AMOUNT,
    token_amount: int = DEFAULT_TOKEN_AMOUNT,
    count: int = 1,
    numerator: int = 101,
    denominator: int = 100,
    timestamps: list[int] | None = None,
) -> tuple[list[PriceObservation], int]:
    """Append ``count`` observations with a geometrically growing token amount.

    Args:
        gateway: Oracle gateway to write through.
        token: Token key.
        eth_amount: Fixed ETH side of every observation.
        token_amount: Token side of the first observation.
        count: Number of observations to append.
        numerator: Growth factor numerator.
        denominator: Growth factor denominator.
        timestamps: Optional explicit timestamp per observation; the batch
            clock is used when omitted.

    Returns:
        The appended observations and the token amount the next step would use.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if numerator <= 0:
        raise ValueError(f"numerator must be positive, got {numerator}")
    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")
    if timestamps is not None and len(timestamps) != count:
        raise ValueError("timestamps must have one entry per observation")

    start_length = await gateway.get_price_length(token)
    appended: list[PriceObservation] = []
    for i in range(count):
        timestamp = timestamps[i] if timestamps is not None else None
        appended.append(
            await gateway.add_observation(token, eth_amount, token_amount, timestamp)
        )
        token_amount = token_amount * numerator // denominator

    logger.info(
        "seeded_rising_prices",
        token=token,
        count=count,
        start_length=start_length,
        next_token_amount=str(token_amount),
    )
    return appended, token_amount
