"""Durable oracle state.

Provides SQLite database management and the typed stores for price
observations and cached KInfo records.
"""

from koracle.data.database import OracleDatabase
from koracle.data.store import KInfoStore, PriceHistoryStore

__all__ = [
    "KInfoStore",
    "OracleDatabase",
    "PriceHistoryStore",
]
