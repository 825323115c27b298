"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Price history persistence settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    db_path: str = "data/oracle.db"
    # FULL fsyncs the WAL on every commit; an acknowledged append survives a crash
    synchronous: Literal["FULL", "NORMAL"] = "FULL"


class VolatilitySettings(BaseSettings):
    """K-factor calibration parameters.

    K = K_BASE * min(k_coefficient * sigma * sqrt(1 + T / reference_period), k_max)
    All fields configurable via VOLATILITY_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="VOLATILITY_")

    lookback_window: int = 50  # observations fed to the estimator
    k_coefficient: Decimal = Decimal("1")
    reference_period_seconds: int = 3600  # T at which the time factor reaches sqrt(2)
    k_max: Decimal = Decimal("1")  # cap on f(sigma, T), i.e. K <= K_BASE


class CacheSettings(BaseSettings):
    """KInfo cache staleness configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    staleness_threshold_seconds: int = 60


class GatewaySettings(BaseSettings):
    """Paid query configuration."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    minimum_fee: int = 10**16  # wei, 0.01 ETH
    max_seed_count: int = 1000  # observations one seeding request may append


class ClockSettings(BaseSettings):
    """Shared coarse time source configuration."""

    model_config = SettingsConfigDict(env_prefix="CLOCK_")

    batch_seconds: int = 1  # observations inside the same batch share a timestamp


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class TokenInfo(BaseModel):
    """Display metadata for a single token."""

    symbol: str
    decimals: int = 18


class TokenSettings(BaseSettings):
    """Static token metadata registry.

    TOKENS_REGISTRY is a JSON object mapping token key to {"symbol", "decimals"}.
    """

    model_config = SettingsConfigDict(env_prefix="TOKENS_")

    registry: dict[str, TokenInfo] = {}


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    store: StoreSettings = StoreSettings()
    volatility: VolatilitySettings = VolatilitySettings()
    cache: CacheSettings = CacheSettings()
    gateway: GatewaySettings = GatewaySettings()
    clock: ClockSettings = ClockSettings()
    api: ApiSettings = ApiSettings()
    tokens: TokenSettings = TokenSettings()
