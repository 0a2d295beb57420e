"""CoinGecko API client: Solana ecosystem market listing.

Free tier, no auth. Identifiers are CoinGecko ids ("solana", "jupiter-exchange-solana"),
not mint addresses.
"""

from __future__ import annotations

from typing import Any

import httpx

from alphafeed.clients.base import BaseClient


class CoinGeckoClient:
    """CoinGecko v3: /coins/markets."""

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = BaseClient(
            base_url="https://api.coingecko.com/api/v3",
            timeout=timeout,
            provider_name="coingecko",
            transport=transport,
        )

    async def get_markets(
        self,
        category: str = "solana-ecosystem",
        per_page: int = 30,
        page: int = 1,
    ) -> Any:
        """Markets for a category ordered by volume. Returns a top-level list."""
        return await self._client.get(
            "/coins/markets",
            params={
                "vs_currency": "usd",
                "category": category,
                "order": "volume_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": "false",
            },
        )

    async def close(self) -> None:
        await self._client.close()
