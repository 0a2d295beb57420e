"""Jupiter API client: Spot price lookup.

Used for single-token price checks outside the aggregation cycle.
"""

from __future__ import annotations

from typing import Any

import httpx

from alphafeed.clients.base import BaseClient


class JupiterClient:
    """Jupiter v6 API: price."""

    def __init__(self, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = BaseClient(
            base_url="https://quote-api.jup.ag/v6",
            timeout=timeout,
            provider_name="jupiter",
            transport=transport,
        )

    async def get_price(self, mint: str) -> Any:
        """Get USD price for a mint.

        Returns {"data": {<mint>: {"id": ..., "price": ...}}}.
        """
        return await self._client.get("/price", params={"ids": mint})

    async def close(self) -> None:
        await self._client.close()
