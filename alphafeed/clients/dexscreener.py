"""DexScreener API client: Free, no-auth pair data.

Endpoints:
- /latest/dex/tokens/solana: Solana pairs with price, volume, price change, mcap
"""

from __future__ import annotations

from typing import Any

import httpx

from alphafeed.clients.base import BaseClient


class DexScreenerClient:
    """DexScreener free API, no auth required.

    Rate limit: ~60 req/min (undocumented but generous for free tier).
    """

    BASE_URL = "https://api.dexscreener.com/latest/dex"

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = BaseClient(
            base_url=self.BASE_URL,
            headers={"User-Agent": "alphafeed/0.1"},
            timeout=timeout,
            provider_name="dexscreener",
            transport=transport,
        )

    async def get_solana_pairs(self) -> Any:
        """GET /tokens/solana.

        Returns {"pairs": [...]} where each pair carries:
        - baseToken (address, name, symbol)
        - priceUsd (string), volume.h24, priceChange.h24, marketCap, fdv
        """
        return await self._client.get("/tokens/solana")

    async def close(self) -> None:
        await self._client.close()
