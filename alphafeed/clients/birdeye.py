"""Birdeye API client: Token list ranked by 24h volume.

Requires an API key (BIRDEYE_API_KEY). Without one Birdeye answers 401,
which the Birdeye source treats as "no data".
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from alphafeed.clients.base import BaseClient


class BirdeyeClient:
    """Birdeye public API: token list by volume."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else os.environ.get("BIRDEYE_API_KEY", "")
        self._client = BaseClient(
            base_url="https://public-api.birdeye.so",
            headers={
                "X-API-KEY": self.api_key,
                "x-chain": "solana",
            },
            timeout=timeout,
            provider_name="birdeye",
            transport=transport,
        )

    async def get_token_list(self, limit: int = 50, offset: int = 0) -> Any:
        """Get tokens sorted by 24h USD volume, descending.

        Returns {"data": {"tokens": [...]}}.
        """
        return await self._client.get(
            "/defi/tokenlist",
            params={
                "sort_by": "v24hUSD",
                "sort_type": "desc",
                "offset": offset,
                "limit": min(limit, 50),
            },
        )

    async def close(self) -> None:
        await self._client.close()
