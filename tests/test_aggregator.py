"""Tests for the token aggregator.

Covers: failure isolation across sources, the 30s cache (one request per
TTL window, failed refresh keeps the old entry), filter-then-dedup order,
identity aliases, the Jupiter price lookup and a misbehaving status sink.
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from alphafeed.aggregator import PRICE_SOURCE_NAME, TokenAggregator, extract_price
from alphafeed.cache import SourceCache
from alphafeed.clients.birdeye import BirdeyeClient
from alphafeed.clients.coingecko import CoinGeckoClient
from alphafeed.clients.dexscreener import DexScreenerClient
from alphafeed.clients.jupiter import JupiterClient
from alphafeed.dedup import IdentityResolver
from alphafeed.filters import FilterConfig
from alphafeed.models import FailurePolicy, SourceStatus, Token
from alphafeed.sources import BirdeyeSource, CoinGeckoSource, DexScreenerSource, TokenSource
from alphafeed.status import InMemoryStatusReporter
from tests.mocks.mock_birdeye import TOKEN_LIST
from tests.mocks.mock_coingecko import SOLANA_MARKETS
from tests.mocks.mock_dexscreener import BONK_MINT, SOLANA_PAIRS, WIF_MINT, WSOL_MINT
from tests.mocks.mock_jupiter import BONK_PRICE_STRING, SOL_PRICE, UNKNOWN_PRICE

LEGACY_MINT = "LEGACYmint444444444444444444444444444444444"
TINY_MINT = "TINYmint33333333333333333333333333333333333"


async def _no_sleep(delay: float) -> None:
    return None


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _serve(payload: Any = None, status: int = 200, calls: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status, json=payload)
    return httpx.MockTransport(handler)


class CountingSource(TokenSource):
    """In-memory source: counts fetch_raw calls, can be told to fail."""

    def __init__(self, name: str, items: list[dict[str, Any]], **kwargs: Any):
        kwargs.setdefault("sleep", _no_sleep)
        super().__init__(**kwargs)
        self.name = name
        self.items = items
        self.calls = 0
        self.fail = False
        self.closed = False

    async def fetch_raw(self) -> Any:
        self.calls += 1
        if self.fail:
            raise RuntimeError(f"{self.name} unavailable")
        return {"items": self.items}

    def extract_items(self, payload: Any) -> list[Any]:
        return payload.get("items", [])

    def normalize(self, item: dict[str, Any]) -> Token | None:
        return Token(
            symbol=item["mint"],
            name=item["mint"],
            mint=item["mint"],
            volume_24h=item.get("volume", "0"),
            market_cap=item.get("mcap"),
            alpha_score=item.get("score", 50),
            source=self.name,
        )

    async def close(self) -> None:
        self.closed = True


def _real_sources(coingecko_status: int = 200, calls: dict[str, list] | None = None) -> list[TokenSource]:
    calls = calls if calls is not None else {}
    return [
        DexScreenerSource(
            DexScreenerClient(transport=_serve(SOLANA_PAIRS, calls=calls.setdefault("dex", []))),
            sleep=_no_sleep,
        ),
        BirdeyeSource(
            BirdeyeClient(api_key="k", transport=_serve(TOKEN_LIST, calls=calls.setdefault("bird", []))),
            sleep=_no_sleep,
        ),
        CoinGeckoSource(
            CoinGeckoClient(transport=_serve(
                SOLANA_MARKETS if coingecko_status == 200 else {"error": "x"},
                status=coingecko_status,
                calls=calls.setdefault("gecko", []),
            )),
            sleep=_no_sleep,
        ),
    ]


class TestFailureIsolation:

    @pytest.mark.asyncio
    async def test_one_source_down_others_still_aggregate(self):
        calls: dict[str, list] = {}
        reporter = InMemoryStatusReporter()
        agg = TokenAggregator(_real_sources(coingecko_status=500, calls=calls), reporter=reporter)

        tokens = await agg.fetch_all()

        by_mint = {t.mint: t for t in tokens}
        assert set(by_mint) == {BONK_MINT, WIF_MINT, TINY_MINT, WSOL_MINT, LEGACY_MINT}
        # Bonk from DEXScreener (100) beats Bonk from Birdeye (58)
        assert by_mint[BONK_MINT].alpha_score == 100
        assert by_mint[BONK_MINT].source == "DEXScreener"
        assert all(0 <= t.alpha_score <= 100 for t in tokens)

        assert reporter.state_of("DEXScreener") is SourceStatus.ACTIVE
        assert reporter.state_of("Birdeye") is SourceStatus.ACTIVE
        assert reporter.state_of("CoinGecko") is SourceStatus.ERROR
        assert len(calls["gecko"]) == 2   # retried once

        cycle = agg.last_cycle
        assert "CoinGecko" in cycle.errors
        assert cycle.per_source == {"DEXScreener": 3, "Birdeye": 3, "CoinGecko": 0}
        assert cycle.raw_count == 6
        assert cycle.unique_count == 5
        await agg.close()

    @pytest.mark.asyncio
    async def test_all_sources_down_returns_empty(self):
        sources = [CountingSource(n, []) for n in ("A", "B", "C")]
        for s in sources:
            s.fail = True
        reporter = InMemoryStatusReporter()
        agg = TokenAggregator(sources, reporter=reporter)

        assert await agg.fetch_all() == []
        assert all(reporter.state_of(n) is SourceStatus.ERROR for n in ("A", "B", "C"))

    @pytest.mark.asyncio
    async def test_degrading_source_reports_warning(self):
        soft = CountingSource("Soft", [{"mint": "S"}], on_failure=FailurePolicy.DEGRADE_EMPTY)
        soft.fail = True
        hard = CountingSource("Hard", [{"mint": "H"}])
        reporter = InMemoryStatusReporter()
        agg = TokenAggregator([soft, hard], reporter=reporter)

        tokens = await agg.fetch_all()

        assert [t.mint for t in tokens] == ["H"]
        assert reporter.state_of("Soft") is SourceStatus.WARNING
        assert agg.last_cycle.errors == {}

    @pytest.mark.asyncio
    async def test_broken_status_sink_does_not_break_cycle(self):
        class ExplodingReporter:
            def update_status(self, *args):
                raise RuntimeError("dashboard offline")

        agg = TokenAggregator([CountingSource("A", [{"mint": "X"}])], reporter=ExplodingReporter())
        assert [t.mint for t in await agg.fetch_all()] == ["X"]

    @pytest.mark.asyncio
    async def test_async_status_sink_is_awaited(self):
        seen = []

        class AsyncReporter:
            async def update_status(self, name, state, message=None):
                seen.append((name, state))

        agg = TokenAggregator([CountingSource("A", [{"mint": "X"}])], reporter=AsyncReporter())
        await agg.fetch_all()
        assert seen == [("A", SourceStatus.ACTIVE)]


class TestCaching:

    @pytest.mark.asyncio
    async def test_one_request_per_ttl_window(self):
        clock = FakeClock()
        source = CountingSource("A", [{"mint": "X"}])
        reporter = InMemoryStatusReporter()
        agg = TokenAggregator([source], reporter=reporter, cache=SourceCache(30, clock=clock))

        await agg.fetch_all()
        clock.now += 10
        second = await agg.fetch_all()
        assert source.calls == 1
        assert [t.mint for t in second] == ["X"]
        assert agg.last_cycle.cached == ["A"]
        # Cache hits still report the source as active
        assert reporter.calls_for("A") == [(SourceStatus.ACTIVE, None)] * 2

        clock.now += 21   # 31s after the first fetch
        await agg.fetch_all()
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_entry(self):
        clock = FakeClock()
        source = CountingSource("A", [{"mint": "X"}])
        agg = TokenAggregator([source], cache=SourceCache(30, clock=clock))

        await agg.fetch_all()
        entry_before = agg.cache.entry("A")

        clock.now += 31
        source.fail = True
        assert await agg.fetch_all() == []
        assert agg.cache.entry("A") is entry_before

    @pytest.mark.asyncio
    async def test_degraded_empty_result_is_not_cached(self):
        clock = FakeClock()
        source = CountingSource("Soft", [{"mint": "S"}], on_failure=FailurePolicy.DEGRADE_EMPTY)
        source.fail = True
        agg = TokenAggregator([source], cache=SourceCache(30, clock=clock))

        assert await agg.fetch_all() == []
        source.fail = False
        clock.now += 1
        assert [t.mint for t in await agg.fetch_all()] == ["S"]

    @pytest.mark.asyncio
    async def test_separate_aggregators_do_not_share_cache(self):
        a = CountingSource("A", [{"mint": "X"}])
        b = CountingSource("A", [{"mint": "Y"}])
        await TokenAggregator([a]).fetch_all()
        tokens = await TokenAggregator([b]).fetch_all()
        assert [t.mint for t in tokens] == ["Y"]
        assert b.calls == 1


class TestPipelineOrder:

    @pytest.mark.asyncio
    async def test_filter_runs_before_dedup(self):
        """A high-score duplicate filtered out must not shadow the survivor."""
        first = CountingSource("A", [{"mint": "M", "score": 95, "mcap": None}])
        second = CountingSource("B", [{"mint": "M", "score": 60, "mcap": "5000000"}])
        agg = TokenAggregator([first, second], filters=FilterConfig(max_market_cap=1e9))

        tokens = await agg.fetch_all()

        assert len(tokens) == 1
        assert tokens[0].alpha_score == 60
        assert agg.last_cycle.raw_count == 2
        assert agg.last_cycle.filtered_count == 1

    @pytest.mark.asyncio
    async def test_unconfigured_filters_keep_everything(self):
        source = CountingSource("A", [{"mint": "X", "score": 0}, {"mint": "Y", "score": 100}])
        tokens = await TokenAggregator([source], filters=FilterConfig()).fetch_all()
        assert {t.mint for t in tokens} == {"X", "Y"}

    @pytest.mark.asyncio
    async def test_identity_aliases_merge_across_namespaces(self):
        resolver = IdentityResolver({"CoinGecko:solana": WSOL_MINT})
        agg = TokenAggregator(_real_sources(), resolver=resolver)

        tokens = await agg.fetch_all()

        sol = [t for t in tokens if t.mint == WSOL_MINT]
        assert len(sol) == 1
        assert not any(t.mint == "solana" for t in tokens)
        await agg.close()


class TestPriceLookup:

    def _agg(self, payload: Any, status: int = 200, calls: list | None = None,
             reporter: InMemoryStatusReporter | None = None) -> TokenAggregator:
        client = JupiterClient(transport=_serve(payload, status=status, calls=calls))
        return TokenAggregator([], price_client=client, reporter=reporter, sleep=_no_sleep)

    @pytest.mark.asyncio
    async def test_price_found(self):
        calls: list = []
        reporter = InMemoryStatusReporter()
        agg = self._agg(SOL_PRICE, calls=calls, reporter=reporter)

        assert await agg.get_price(WSOL_MINT) == pytest.approx(101.37)
        assert calls[0].url.path == "/v6/price"
        assert calls[0].url.params["ids"] == WSOL_MINT
        assert reporter.state_of(PRICE_SOURCE_NAME) is SourceStatus.ACTIVE
        await agg.close()

    @pytest.mark.asyncio
    async def test_string_price_parsed(self):
        agg = self._agg(BONK_PRICE_STRING)
        assert await agg.get_price(BONK_MINT) == pytest.approx(0.00002431)

    @pytest.mark.asyncio
    async def test_unknown_mint_is_none(self):
        reporter = InMemoryStatusReporter()
        agg = self._agg(UNKNOWN_PRICE, reporter=reporter)
        assert await agg.get_price("nope") is None
        assert reporter.state_of(PRICE_SOURCE_NAME) is SourceStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_failure_is_none_and_reported(self):
        calls: list = []
        reporter = InMemoryStatusReporter()
        agg = self._agg({"error": "x"}, status=500, calls=calls, reporter=reporter)

        assert await agg.get_price(WSOL_MINT) is None
        assert len(calls) == 2
        state, message = reporter.calls_for(PRICE_SOURCE_NAME)[-1]
        assert state is SourceStatus.ERROR
        assert "500" in message

    @pytest.mark.asyncio
    async def test_price_lookup_is_not_cached(self):
        calls: list = []
        agg = self._agg(SOL_PRICE, calls=calls)
        await agg.get_price(WSOL_MINT)
        await agg.get_price(WSOL_MINT)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_no_price_client(self):
        assert await TokenAggregator([]).get_price(WSOL_MINT) is None

    @pytest.mark.parametrize("payload", [None, [], {"data": None}, {"data": {"M": "1.0"}}, {"data": {"M": {"price": 0}}}])
    def test_extract_price_malformed(self, payload):
        assert extract_price(payload, "M") is None


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_initialize_marks_all_active(self):
        reporter = InMemoryStatusReporter()
        agg = TokenAggregator(
            [CountingSource("A", []), CountingSource("B", [])],
            reporter=reporter,
            price_client=JupiterClient(transport=_serve({})),
        )
        await agg.initialize()
        assert set(reporter.sources) == {"A", "B", PRICE_SOURCE_NAME}
        assert all(h.state is SourceStatus.ACTIVE for h in reporter.sources.values())
        await agg.close()

    @pytest.mark.asyncio
    async def test_context_manager_closes_sources(self):
        source = CountingSource("A", [])
        async with TokenAggregator([source]) as agg:
            await agg.fetch_all()
        assert source.closed
