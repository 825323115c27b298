"""Shared test fixtures for the K-factor price oracle."""

from typing import Any

import pytest
import pytest_asyncio

from koracle.clock import BatchClock
from koracle.config import (
    AppSettings,
    CacheSettings,
    GatewaySettings,
    StoreSettings,
    TokenSettings,
    TokenInfo,
)
from koracle.main import build_components

#: Token key used throughout the tests (a USDT-like 6-decimal token).
TOKEN = "0xdAC17F958D2ee523a2206206994597C13D831ec7"

START_TIME = 1_700_000_000


class ManualTime:
    """Controllable wall-clock source for BatchClock."""

    def __init__(self, start: float = START_TIME) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def manual_time() -> ManualTime:
    return ManualTime()


@pytest.fixture
def clock(manual_time: ManualTime) -> BatchClock:
    return BatchClock(batch_seconds=1, time_source=manual_time)


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """AppSettings with a temporary database and a registered test token."""
    return AppSettings(
        log_level="DEBUG",
        store=StoreSettings(db_path=str(tmp_path / "oracle.db")),
        cache=CacheSettings(staleness_threshold_seconds=60),
        gateway=GatewaySettings(minimum_fee=10**16),
        tokens=TokenSettings(registry={TOKEN: TokenInfo(symbol="USDT", decimals=6)}),
    )


@pytest_asyncio.fixture
async def components(mock_settings: AppSettings, clock: BatchClock) -> Any:
    """Fully wired components with a connected database."""
    built = build_components(mock_settings, clock=clock)
    await built["database"].connect()
    yield built
    await built["database"].close()
