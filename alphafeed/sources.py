"""Token sources: fetch one provider's list and normalize it into Tokens.

Each source owns:
- its provider client (endpoint, params, headers, timeout)
- its retry attempt count
- its failure policy (propagate the error, or degrade to an empty list)
- the mapping from the provider's item shape into Token

Provider-specific shapes never leave this module; the aggregator only
sees list[Token].
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from alphafeed.clients.birdeye import BirdeyeClient
from alphafeed.clients.coingecko import CoinGeckoClient
from alphafeed.clients.dexscreener import DexScreenerClient
from alphafeed.models import DEFAULT_DECIMALS, FailurePolicy, SourceStatus, Token
from alphafeed.scoring import calculate_alpha_score
from alphafeed.status import StatusReporter, report_status
from alphafeed.utils.numbers import (
    format_decimal,
    parse_market_cap,
    parse_number,
    parse_optional_int,
)
from alphafeed.utils.retry import UniformSource, retry_request

log = logging.getLogger("alphafeed.sources")

FALLBACK_MESSAGE = "Using fallback data"
DEFAULT_LIMIT = 50


def _mapping(value: Any) -> dict[str, Any]:
    """Nested provider object, or {} when it is missing or the wrong type."""
    return value if isinstance(value, dict) else {}


def _first(item: dict[str, Any], *keys: str) -> Any:
    """First non-None value among keys (providers rename fields between versions)."""
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def build_token(
    *,
    source: str,
    symbol: Any,
    name: Any,
    mint: Any,
    price: Any,
    volume: Any,
    price_change: Any,
    market_cap: Any,
    decimals: Any = None,
    holders: Any = None,
) -> Token | None:
    """Coerce raw provider fields and score them. None if there is no identifier."""
    mint = str(mint or "").strip()
    if not mint:
        return None

    volume_n = parse_number(volume)
    change_n = parse_number(price_change)
    mcap_n = parse_market_cap(market_cap)

    return Token(
        symbol=str(symbol or ""),
        name=str(name or ""),
        mint=mint,
        decimals=int(parse_number(decimals)) if decimals is not None else DEFAULT_DECIMALS,
        price=format_decimal(parse_number(price)),
        volume_24h=format_decimal(volume_n),
        price_change_24h=format_decimal(change_n),
        market_cap=format_decimal(mcap_n) if mcap_n is not None else None,
        holders=parse_optional_int(holders),
        alpha_score=calculate_alpha_score(volume_n, change_n, mcap_n),
        source=source,
    )


# ── Provider mappings ────────────────────────────────────────────────


def map_dexscreener_pair(pair: dict[str, Any]) -> Token | None:
    """Map a DexScreener pair to a Token. Mint is the base token address."""
    base_token = _mapping(pair.get("baseToken"))
    volume = _mapping(pair.get("volume"))
    price_change = _mapping(pair.get("priceChange"))
    return build_token(
        source=DexScreenerSource.name,
        symbol=base_token.get("symbol"),
        name=base_token.get("name"),
        mint=base_token.get("address"),
        price=pair.get("priceUsd"),
        volume=volume.get("h24"),
        price_change=price_change.get("h24"),
        market_cap=pair.get("marketCap"),
        decimals=DEFAULT_DECIMALS,
    )


def map_birdeye_token(token: dict[str, Any]) -> Token | None:
    """Map a Birdeye token-list entry to a Token."""
    return build_token(
        source=BirdeyeSource.name,
        symbol=token.get("symbol"),
        name=token.get("name"),
        mint=token.get("address"),
        price=token.get("price"),
        volume=_first(token, "v24hUSD", "volume24h"),
        price_change=_first(token, "v24hChangePercent", "priceChange24h"),
        market_cap=_first(token, "mc", "marketCap"),
        decimals=token.get("decimals"),
        holders=_first(token, "holder", "holders"),
    )


def map_coingecko_market(coin: dict[str, Any]) -> Token | None:
    """Map a CoinGecko market row. Mint is the CoinGecko id, not an address."""
    return build_token(
        source=CoinGeckoSource.name,
        symbol=str(coin.get("symbol") or "").upper(),
        name=coin.get("name"),
        mint=coin.get("id"),
        price=coin.get("current_price"),
        volume=coin.get("total_volume"),
        price_change=coin.get("price_change_percentage_24h"),
        market_cap=coin.get("market_cap"),
        decimals=DEFAULT_DECIMALS,
    )


# ── Sources ──────────────────────────────────────────────────────────


class TokenSource(ABC):
    """Fetch-and-normalize capability for one provider."""

    name: str = ""
    default_retry_attempts: int = 2
    default_failure_policy: FailurePolicy = FailurePolicy.PROPAGATE

    def __init__(
        self,
        *,
        limit: int = DEFAULT_LIMIT,
        retry_attempts: int | None = None,
        on_failure: FailurePolicy | None = None,
        rng: UniformSource | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.limit = limit
        self.retry_attempts = retry_attempts if retry_attempts is not None else self.default_retry_attempts
        self.on_failure = on_failure or self.default_failure_policy
        self._rng = rng
        self._sleep = sleep

    @abstractmethod
    async def fetch_raw(self) -> Any:
        """One HTTP round trip. Raises APIError on failure."""

    @abstractmethod
    def extract_items(self, payload: Any) -> list[Any]:
        """Pull the item list out of the payload. Unrecognized payload → []."""

    @abstractmethod
    def normalize(self, item: dict[str, Any]) -> Token | None:
        """Map one provider item. None when the item has no identifier."""

    async def close(self) -> None:
        return None

    def normalize_all(self, payload: Any) -> list[Token]:
        items = self.extract_items(payload)
        if not isinstance(items, list):
            return []

        tokens: list[Token] = []
        for item in items[: self.limit]:
            if not isinstance(item, dict):
                continue
            try:
                token = self.normalize(item)
            except (ValueError, TypeError, AttributeError) as e:
                log.debug("%s: skipping malformed item: %s", self.name, e)
                continue
            if token is None:
                log.debug("%s: skipping item without identifier", self.name)
                continue
            tokens.append(token)
        return tokens

    async def fetch_tokens(self, reporter: StatusReporter | None = None) -> list[Token]:
        """Fetch with retry, report active, normalize. Raises on failure."""
        payload = await retry_request(
            self.fetch_raw,
            self.retry_attempts,
            rng=self._rng,
            sleep=self._sleep,
        )
        await report_status(reporter, self.name, SourceStatus.ACTIVE)
        tokens = self.normalize_all(payload)
        log.debug("%s: %d tokens", self.name, len(tokens))
        return tokens

    async def handle_failure(self, error: Exception, reporter: StatusReporter | None = None) -> list[Token]:
        """Apply the failure policy: report and re-raise, or report and yield []."""
        if self.on_failure is FailurePolicy.DEGRADE_EMPTY:
            log.warning("%s fetch failed, degrading to empty: %s", self.name, error)
            await report_status(reporter, self.name, SourceStatus.WARNING, FALLBACK_MESSAGE)
            return []
        await report_status(reporter, self.name, SourceStatus.ERROR, str(error) or "Unknown error")
        raise error

    async def fetch(self, reporter: StatusReporter | None = None) -> list[Token]:
        """fetch_tokens() with the failure policy applied.

        Raises:
            Exception: fetch failed and the policy is PROPAGATE
        """
        try:
            return await self.fetch_tokens(reporter)
        except Exception as e:
            return await self.handle_failure(e, reporter)


class DexScreenerSource(TokenSource):
    name = "DEXScreener"

    def __init__(self, client: DexScreenerClient | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.client = client or DexScreenerClient()

    async def fetch_raw(self) -> Any:
        return await self.client.get_solana_pairs()

    def extract_items(self, payload: Any) -> list[Any]:
        if isinstance(payload, dict):
            return payload.get("pairs") or []
        return []

    def normalize(self, item: dict[str, Any]) -> Token | None:
        return map_dexscreener_pair(item)

    async def close(self) -> None:
        await self.client.close()


class BirdeyeSource(TokenSource):
    """Soft source: a failure means "no Birdeye data this cycle", never an error."""

    name = "Birdeye"
    default_retry_attempts = 1
    default_failure_policy = FailurePolicy.DEGRADE_EMPTY

    def __init__(self, client: BirdeyeClient | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.client = client or BirdeyeClient()

    async def fetch_raw(self) -> Any:
        return await self.client.get_token_list(limit=self.limit)

    def extract_items(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            return []
        data = payload.get("data")
        if not isinstance(data, dict):
            return []
        return data.get("tokens") or []

    def normalize(self, item: dict[str, Any]) -> Token | None:
        return map_birdeye_token(item)

    async def close(self) -> None:
        await self.client.close()


class CoinGeckoSource(TokenSource):
    name = "CoinGecko"

    def __init__(self, client: CoinGeckoClient | None = None, per_page: int = 30, **kwargs: Any):
        super().__init__(**kwargs)
        self.client = client or CoinGeckoClient()
        self.per_page = per_page

    async def fetch_raw(self) -> Any:
        return await self.client.get_markets(per_page=self.per_page)

    def extract_items(self, payload: Any) -> list[Any]:
        # Top-level list; an error body comes back as a dict
        return payload if isinstance(payload, list) else []

    def normalize(self, item: dict[str, Any]) -> Token | None:
        return map_coingecko_market(item)

    async def close(self) -> None:
        await self.client.close()


SOURCE_TYPES: dict[str, type[TokenSource]] = {
    "dexscreener": DexScreenerSource,
    "birdeye": BirdeyeSource,
    "coingecko": CoinGeckoSource,
}
