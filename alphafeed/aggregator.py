"""Token aggregator: one cycle from every source to one clean token list.

Cycle:
1. every source runs concurrently (cache first, then network)
2. a failing source is isolated; the others still contribute
3. optional threshold filters
4. identity resolution + dedup by mint, highest alpha score wins

Usage:
    async with TokenAggregator.from_settings(load_settings()) as agg:
        tokens = await agg.fetch_all()
        price = await agg.get_price(mint)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from alphafeed.cache import SourceCache
from alphafeed.clients.birdeye import BirdeyeClient
from alphafeed.clients.coingecko import CoinGeckoClient
from alphafeed.clients.dexscreener import DexScreenerClient
from alphafeed.clients.jupiter import JupiterClient
from alphafeed.config import Settings
from alphafeed.dedup import IdentityResolver, deduplicate_tokens
from alphafeed.filters import FilterConfig, apply_filters
from alphafeed.models import SourceStatus, Token
from alphafeed.sources import BirdeyeSource, CoinGeckoSource, DexScreenerSource, TokenSource
from alphafeed.status import LoggingStatusReporter, StatusReporter, report_status
from alphafeed.utils.numbers import parse_number
from alphafeed.utils.retry import UniformSource, retry_request

log = logging.getLogger("alphafeed.aggregator")

PRICE_SOURCE_NAME = "Jupiter"


@dataclass
class CycleReport:
    """Diagnostics for the last fetch_all() run."""
    per_source: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    cached: list[str] = field(default_factory=list)
    raw_count: int = 0
    filtered_count: int = 0
    unique_count: int = 0
    duration_ms: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "per_source": dict(self.per_source),
            "errors": dict(self.errors),
            "cached": list(self.cached),
            "raw_count": self.raw_count,
            "filtered_count": self.filtered_count,
            "unique_count": self.unique_count,
            "duration_ms": self.duration_ms,
        }


def extract_price(payload: Any, mint: str) -> float | None:
    """Pull data[mint].price out of a Jupiter price response."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    entry = data.get(mint)
    if not isinstance(entry, dict):
        return None
    price = parse_number(entry.get("price"))
    return price if price else None


class TokenAggregator:
    """Owns the sources, their cache entries and the status sink."""

    def __init__(
        self,
        sources: Sequence[TokenSource],
        *,
        filters: FilterConfig | None = None,
        reporter: StatusReporter | None = None,
        cache: SourceCache | None = None,
        resolver: IdentityResolver | None = None,
        price_client: JupiterClient | None = None,
        price_retry_attempts: int = 2,
        rng: UniformSource | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.sources = list(sources)
        self.filters = filters or FilterConfig()
        self.reporter = reporter if reporter is not None else LoggingStatusReporter()
        self.cache = cache or SourceCache()
        self.resolver = resolver
        self.price_client = price_client
        self.price_retry_attempts = price_retry_attempts
        self._rng = rng
        self._sleep = sleep
        self.last_cycle: CycleReport | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        reporter: StatusReporter | None = None,
        rng: UniformSource | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> "TokenAggregator":
        """Default wiring: DEXScreener, Birdeye, CoinGecko + Jupiter price."""
        sources: list[TokenSource] = []

        def _common(key: str) -> dict[str, Any]:
            s = settings.sources[key]
            return {
                "limit": s.limit,
                "retry_attempts": s.retry_attempts,
                "on_failure": s.on_failure,
                "rng": rng,
                "sleep": sleep,
            }

        dex = settings.sources.get("dexscreener")
        if dex and dex.enabled:
            sources.append(DexScreenerSource(
                DexScreenerClient(timeout=dex.timeout_seconds),
                **_common("dexscreener"),
            ))

        bird = settings.sources.get("birdeye")
        if bird and bird.enabled:
            sources.append(BirdeyeSource(
                BirdeyeClient(api_key=settings.birdeye_api_key, timeout=bird.timeout_seconds),
                **_common("birdeye"),
            ))

        gecko = settings.sources.get("coingecko")
        if gecko and gecko.enabled:
            sources.append(CoinGeckoSource(
                CoinGeckoClient(timeout=gecko.timeout_seconds),
                per_page=gecko.limit,
                **_common("coingecko"),
            ))

        price_client = JupiterClient(timeout=settings.price.timeout_seconds) if settings.price.enabled else None

        return cls(
            sources,
            filters=settings.filters,
            reporter=reporter,
            cache=SourceCache(ttl_seconds=settings.cache_ttl_seconds),
            resolver=IdentityResolver(settings.identity_aliases) if settings.identity_aliases else None,
            price_client=price_client,
            price_retry_attempts=settings.price.retry_attempts,
            rng=rng,
            sleep=sleep,
        )

    async def __aenter__(self) -> "TokenAggregator":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        for source in self.sources:
            await source.close()
        if self.price_client is not None:
            await self.price_client.close()

    async def initialize(self) -> None:
        """Mark every known source active before the first cycle."""
        names = [s.name for s in self.sources]
        if self.price_client is not None:
            names.append(PRICE_SOURCE_NAME)
        for name in names:
            await report_status(self.reporter, name, SourceStatus.ACTIVE)

    async def get_or_fetch(self, source: TokenSource) -> tuple[list[Token], bool]:
        """Cached tokens inside the TTL, otherwise a fresh fetch.

        Returns (tokens, from_cache). A failed refresh leaves the old entry alone.
        """
        cached = self.cache.get(source.name)
        if cached is not None:
            await report_status(self.reporter, source.name, SourceStatus.ACTIVE)
            return list(cached), True

        try:
            tokens = await source.fetch_tokens(self.reporter)
        except Exception as e:
            # DEGRADE_EMPTY returns [] here, PROPAGATE re-raises
            return await source.handle_failure(e, self.reporter), False

        self.cache.store(source.name, tokens)
        return tokens, False

    async def fetch_all(self) -> list[Token]:
        """Run one aggregation cycle. Never raises for a source failure."""
        started = time.monotonic()
        report = CycleReport()

        results = await asyncio.gather(
            *(self.get_or_fetch(source) for source in self.sources),
            return_exceptions=True,
        )

        tokens: list[Token] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log.warning("%s fetch failed: %s", source.name, result)
                report.errors[source.name] = str(result) or type(result).__name__
                report.per_source[source.name] = 0
                continue
            source_tokens, from_cache = result
            if from_cache:
                report.cached.append(source.name)
            report.per_source[source.name] = len(source_tokens)
            tokens.extend(source_tokens)

        report.raw_count = len(tokens)

        # Filters only when at least one threshold is set
        if self.filters.is_configured:
            tokens = apply_filters(tokens, self.filters)
        report.filtered_count = len(tokens)

        unique = deduplicate_tokens(tokens, self.resolver)
        report.unique_count = len(unique)
        report.duration_ms = int((time.monotonic() - started) * 1000)
        self.last_cycle = report

        log.info(
            "cycle: %d raw, %d after filters, %d unique (%d sources failed)",
            report.raw_count, report.filtered_count, report.unique_count, len(report.errors),
        )
        return unique

    async def get_price(self, mint: str) -> float | None:
        """Spot price via Jupiter. Never raises; failure → None."""
        if self.price_client is None or not mint:
            return None
        client = self.price_client
        try:
            payload = await retry_request(
                lambda: client.get_price(mint),
                self.price_retry_attempts,
                rng=self._rng,
                sleep=self._sleep,
            )
        except Exception as e:
            log.warning("price lookup failed for %s: %s", mint, e)
            await report_status(self.reporter, PRICE_SOURCE_NAME, SourceStatus.ERROR, str(e) or "Unknown error")
            return None

        await report_status(self.reporter, PRICE_SOURCE_NAME, SourceStatus.ACTIVE)
        return extract_price(payload, mint)
