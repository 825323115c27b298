"""Notification channel for oracle query records.

Observer pattern: subscribers register async handlers and every published
OracleQueried record is delivered to each of them in subscription order.
Every record is also written to the structured log as an audit trail.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from koracle.logging import get_logger
from koracle.models import OracleQueried

logger = get_logger(__name__)

Handler = Callable[[OracleQueried], Awaitable[None]]


class NotificationChannel:
    """Publishes OracleQueried records to subscribed handlers."""

    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register a handler and return a callable that unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, event: OracleQueried) -> None:
        """Log the record and deliver it to every subscriber.

        A failing subscriber is logged and skipped; it does not prevent
        delivery to the others or fail the query that produced the record.
        """
        logger.info(
            "oracle_queried",
            token=event.token,
            account=event.account,
            payment=str(event.payment),
            k=event.result.k,
            sigma=str(event.result.sigma),
            t=event.result.t,
            eth_amount=str(event.result.eth_amount),
            erc20_amount=str(event.result.erc20_amount),
            updated_at=event.updated_at,
        )
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception("notification_handler_failed", token=event.token)
