"""Base HTTP client for the alphafeed API layer.

Provides:
- Timeout handling
- Structured error handling (APIError with retryable flag)
- Injectable transport for tests (httpx.MockTransport)

Retry lives in alphafeed.utils.retry so each Source can pick its own
attempt count. All provider clients wrap this base.
"""

from __future__ import annotations

from typing import Any

import httpx


class APIError(Exception):
    """Structured API error."""

    def __init__(self, message: str, status_code: int = 0, provider: str = "", retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider
        self.retryable = retryable


class BaseClient:
    """Thin async HTTP client that turns every failure into an APIError.

    Usage:
        client = BaseClient(
            base_url="https://api.example.com",
            headers={"X-API-KEY": "xxx"},
            timeout=10.0,
            provider_name="example",
        )
        data = await client.get("/endpoint", params={"q": "test"})
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        provider_name: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider_name = provider_name
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET request, JSON-decoded."""
        return await self._request("GET", path, params=params, headers=headers)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise APIError(
                f"Timeout after {self.timeout:g}s from {self.provider_name}: {e}",
                provider=self.provider_name,
                retryable=True,
            ) from e
        except httpx.TransportError as e:
            raise APIError(
                f"Connection error to {self.provider_name}: {e}",
                provider=self.provider_name,
                retryable=True,
            ) from e

        if response.status_code == 429:
            raise APIError(
                f"Rate limited by {self.provider_name}",
                status_code=429,
                provider=self.provider_name,
                retryable=True,
            )

        if response.status_code >= 500:
            raise APIError(
                f"Server error from {self.provider_name}: {response.status_code}",
                status_code=response.status_code,
                provider=self.provider_name,
                retryable=True,
            )

        if response.status_code >= 400:
            raise APIError(
                f"Client error from {self.provider_name}: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
                provider=self.provider_name,
                retryable=False,
            )

        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Invalid JSON from {self.provider_name}",
                status_code=response.status_code,
                provider=self.provider_name,
                retryable=False,
            ) from e
