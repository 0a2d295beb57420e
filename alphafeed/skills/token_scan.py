"""Token Scan: CLI entry point.

Runs one aggregation cycle (DEXScreener + Birdeye + CoinGecko) and prints
the deduplicated, scored token list as JSON. Thresholds come from the
environment unless overridden on the command line.

Usage:
    python3 -m alphafeed.skills.token_scan
    python3 -m alphafeed.skills.token_scan --min-alpha 70 --top 10
    python3 -m alphafeed.skills.token_scan --price <MINT_ADDRESS>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from alphafeed.aggregator import TokenAggregator
from alphafeed.config import ConfigError, load_settings
from alphafeed.scoring import score_breakdown
from alphafeed.status import InMemoryStatusReporter

# Load environment variables (override=True: always use .env over stale inherited vars)
load_dotenv(override=True)


async def scan(
    top: int | None = None,
    explain: bool = False,
    min_volume: float | None = None,
    max_market_cap: float | None = None,
    min_alpha: float | None = None,
    config_path: str | None = None,
) -> dict[str, Any]:
    """One cycle → JSON-ready dict with tokens, source health and diagnostics."""
    settings = load_settings(config_path=config_path)
    overrides = {
        k: v
        for k, v in (
            ("min_volume_24h", min_volume),
            ("max_market_cap", max_market_cap),
            ("min_alpha_score", min_alpha),
        )
        if v is not None
    }
    if overrides:
        settings.filters = settings.filters.model_copy(update=overrides)

    reporter = InMemoryStatusReporter()
    async with TokenAggregator.from_settings(settings, reporter=reporter) as agg:
        await agg.initialize()
        tokens = await agg.fetch_all()
        cycle = agg.last_cycle

    tokens.sort(key=lambda t: t.alpha_score, reverse=True)
    if top:
        tokens = tokens[:top]

    rows = []
    for t in tokens:
        row = t.to_wire()
        if explain:
            row["alphaBreakdown"] = score_breakdown(
                t.volume_value, float(t.price_change_24h), t.market_cap_value,
            ).as_dict()
        rows.append(row)

    return {
        "tokens": rows,
        "count": len(rows),
        "sources": reporter.snapshot(),
        "cycle": cycle.as_dict() if cycle else {},
    }


async def lookup_price(mint: str, config_path: str | None = None) -> dict[str, Any]:
    settings = load_settings(config_path=config_path)
    reporter = InMemoryStatusReporter()
    async with TokenAggregator.from_settings(settings, reporter=reporter) as agg:
        price = await agg.get_price(mint)
    return {"mint": mint, "price": price, "sources": reporter.snapshot()}


def main() -> int:
    parser = argparse.ArgumentParser(description="Aggregate and score Solana tokens")
    parser.add_argument("--price", metavar="MINT", help="Spot price lookup for one mint")
    parser.add_argument("--top", type=int, help="Only the N highest-scored tokens")
    parser.add_argument("--explain", action="store_true", help="Include alpha score breakdown")
    parser.add_argument("--min-volume", type=float, help="Override TOKENS_MIN_VOLUME_24H")
    parser.add_argument("--max-market-cap", type=float, help="Override TOKENS_MAX_MARKETCAP")
    parser.add_argument("--min-alpha", type=float, help="Override TOKENS_MIN_ALPHA")
    parser.add_argument("--config", help="Path to sources.yaml")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    try:
        if args.price:
            result = asyncio.run(lookup_price(args.price, config_path=args.config))
        else:
            result = asyncio.run(scan(
                top=args.top,
                explain=args.explain,
                min_volume=args.min_volume,
                max_market_cap=args.max_market_cap,
                min_alpha=args.min_alpha,
                config_path=args.config,
            ))
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
