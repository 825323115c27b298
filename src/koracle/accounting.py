"""Accounting collaborator for paid oracle queries.

The oracle only enforces the minimum fee; settlement belongs to the
collaborator. InMemoryAccounting is the default used when no external
ledger is wired in.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict

from koracle.logging import get_logger

logger = get_logger(__name__)


class AccountingCollaborator(ABC):
    """Abstract receiver of query fees."""

    @abstractmethod
    async def record_fee(self, token: str, account: str, payment: int) -> None:
        """Record a fee paid by ``account`` for querying ``token``."""
        ...


class InMemoryAccounting(AccountingCollaborator):
    """Keeps per-account fee totals in memory."""

    def __init__(self) -> None:
        self._totals: dict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()

    async def record_fee(self, token: str, account: str, payment: int) -> None:
        async with self._lock:
            self._totals[account] += payment
        logger.debug("query_fee_recorded", token=token, account=account, payment=str(payment))

    def total_paid(self, account: str) -> int:
        """Total fees paid by account so far."""
        return self._totals.get(account, 0)

    @property
    def total_collected(self) -> int:
        return sum(self._totals.values())
