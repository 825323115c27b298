"""Token metadata provider interface.

The oracle core never stores token metadata; decimals and symbol are only
used to render human-readable prices.
"""

from abc import ABC, abstractmethod

from koracle.config import TokenInfo
from koracle.exceptions import UnknownTokenError


class TokenMetadataProvider(ABC):
    """Abstract source of token display metadata."""

    @abstractmethod
    async def decimals(self, token: str) -> int:
        """Number of decimals the token amount is denominated in."""
        ...

    @abstractmethod
    async def symbol(self, token: str) -> str:
        """Ticker symbol of the token."""
        ...


class StaticTokenRegistry(TokenMetadataProvider):
    """In-process metadata provider backed by TokenSettings.registry.

    Raises UnknownTokenError for tokens that were not registered.
    """

    def __init__(self, registry: dict[str, TokenInfo] | None = None) -> None:
        self._registry: dict[str, TokenInfo] = dict(registry or {})

    def _info(self, token: str) -> TokenInfo:
        info = self._registry.get(token)
        if info is None:
            raise UnknownTokenError(f"no metadata registered for token {token!r}")
        return info

    async def decimals(self, token: str) -> int:
        return self._info(token).decimals

    async def symbol(self, token: str) -> str:
        return self._info(token).symbol
