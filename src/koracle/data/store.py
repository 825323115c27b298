"""Typed SQLite read/write abstraction for the oracle's durable state.

PriceHistoryStore is the append-only, per-token ordered log of price
observations. KInfoStore persists the single KInfo record per token.
All SQL is isolated behind these two classes.

Amounts are stored as TEXT in SQLite (its INTEGER is 64-bit) and restored
as int on read.
"""

import asyncio

from koracle.data.database import OracleDatabase
from koracle.exceptions import EmptyHistoryError, ValidationError
from koracle.fixed_point import check_positive_uint256
from koracle.logging import get_logger
from koracle.models import KInfo, PriceObservation

logger = get_logger(__name__)

_OBSERVATION_COLUMNS = "token, sequence_index, eth_amount, token_amount, timestamp"


def _row_to_observation(row: tuple) -> PriceObservation:
    return PriceObservation(
        token=row[0],
        sequence_index=row[1],
        eth_amount=int(row[2]),
        token_amount=int(row[3]),
        timestamp=row[4],
    )


def _check_token(token: str) -> str:
    if not isinstance(token, str) or not token:
        raise ValidationError("token key must be a non-empty string")
    return token


class PriceHistoryStore:
    """Append-only per-token price log backed by SQLite.

    Each token's series is guarded by its own asyncio.Lock so an append
    (read tail, insert, commit) is atomic with respect to concurrent appends
    and snapshot reads for the same token.

    Usage:
        async with OracleDatabase("data/oracle.db") as database:
            store = PriceHistoryStore(database)
            await store.append("0xToken", 10 * 10**18, 3_255_000_000, 1_700_000_000)
    """

    def __init__(self, database: OracleDatabase) -> None:
        self._database = database
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, token: str) -> asyncio.Lock:
        lock = self._locks.get(token)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[token] = lock
        return lock

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def append(
        self,
        token: str,
        eth_amount: int,
        token_amount: int,
        timestamp: int,
    ) -> PriceObservation:
        """Append a new observation and commit it before returning.

        The new observation gets sequence_index == length(token).

        Raises:
            ValidationError: zero/negative amounts, empty token, or a timestamp
                earlier than the latest stored one.
            Uint256OverflowError: an amount exceeds the uint256 range.
        """
        _check_token(token)
        check_positive_uint256("eth_amount", eth_amount)
        check_positive_uint256("token_amount", token_amount)
        if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
            raise ValidationError(f"timestamp must be a non-negative integer, got {timestamp!r}")

        db = self._database.db
        async with self._lock_for(token):
            cursor = await db.execute(
                "SELECT sequence_index, timestamp FROM price_observations "
                "WHERE token = ? ORDER BY sequence_index DESC LIMIT 1",
                (token,),
            )
            tail = await cursor.fetchone()
            if tail is None:
                sequence_index = 0
            else:
                sequence_index = tail[0] + 1
                if timestamp < tail[1]:
                    raise ValidationError(
                        f"timestamp {timestamp} is earlier than latest observation {tail[1]}"
                    )

            async with self._database.transaction() as tx:
                await tx.execute(
                    f"INSERT INTO price_observations ({_OBSERVATION_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (token, sequence_index, str(eth_amount), str(token_amount), timestamp),
                )

        logger.debug(
            "price_appended",
            token=token,
            sequence_index=sequence_index,
            eth_amount=str(eth_amount),
            token_amount=str(token_amount),
            timestamp=timestamp,
        )
        return PriceObservation(
            token=token,
            sequence_index=sequence_index,
            eth_amount=eth_amount,
            token_amount=token_amount,
            timestamp=timestamp,
        )

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def length(self, token: str) -> int:
        """Number of observations recorded for token (0 if unseen)."""
        _check_token(token)
        async with self._lock_for(token):
            cursor = await self._database.db.execute(
                "SELECT COUNT(*) FROM price_observations WHERE token = ?",
                (token,),
            )
            row = await cursor.fetchone()
        return row[0]

    async def latest(self, token: str) -> PriceObservation:
        """Most recent observation for token.

        Raises EmptyHistoryError if nothing has been recorded.
        """
        _check_token(token)
        async with self._lock_for(token):
            cursor = await self._database.db.execute(
                f"SELECT {_OBSERVATION_COLUMNS} FROM price_observations "
                "WHERE token = ? ORDER BY sequence_index DESC LIMIT 1",
                (token,),
            )
            row = await cursor.fetchone()
        if row is None:
            raise EmptyHistoryError(token)
        return _row_to_observation(row)

    async def window(self, token: str, n: int) -> list[PriceObservation]:
        """Up to ``n`` most recent observations, oldest first."""
        _check_token(token)
        if n <= 0:
            raise ValidationError(f"window size must be positive, got {n}")
        async with self._lock_for(token):
            cursor = await self._database.db.execute(
                f"SELECT {_OBSERVATION_COLUMNS} FROM price_observations "
                "WHERE token = ? ORDER BY sequence_index DESC LIMIT ?",
                (token, n),
            )
            rows = await cursor.fetchall()
        return [_row_to_observation(row) for row in reversed(rows)]

    async def tokens(self) -> dict[str, int]:
        """Map of every token with history to its series length."""
        cursor = await self._database.db.execute(
            "SELECT token, COUNT(*) FROM price_observations GROUP BY token ORDER BY token"
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}


class KInfoStore:
    """Durable single-row-per-token KInfo persistence."""

    def __init__(self, database: OracleDatabase) -> None:
        self._database = database

    async def load(self, token: str) -> KInfo | None:
        """Return the persisted KInfo for token, or None if never computed."""
        cursor = await self._database.db.execute(
            "SELECT k, sigma, t, updated_at FROM k_info WHERE token = ?",
            (token,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return KInfo(k=int(row[0]), sigma=int(row[1]), t=row[2], updated_at=row[3])

    async def save(self, token: str, k_info: KInfo) -> None:
        """Replace the KInfo record for token in a single committed UPSERT."""
        async with self._database.transaction() as tx:
            await tx.execute(
                "INSERT OR REPLACE INTO k_info (token, k, sigma, t, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (token, str(k_info.k), str(k_info.sigma), k_info.t, k_info.updated_at),
            )
