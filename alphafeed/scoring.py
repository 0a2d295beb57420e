"""Alpha Scoring
Heuristic 0-100 ranking signal from 24h volume, 24h price change and market cap.

Pure and deterministic: same inputs, same score. Not a financial guarantee.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from alphafeed.utils.numbers import parse_number

BASE_SCORE = 50

# (threshold_usd, bonus), first match wins, strictly greater than
VOLUME_TIERS = (
    (10_000_000, 30),
    (1_000_000, 20),
    (100_000, 10),
)

MARKET_CAP_TIERS = (
    (1_000_000_000, 20),
    (100_000_000, 15),
    (10_000_000, 10),
    (1_000_000, 5),
)

PRICE_CHANGE_MULTIPLIER = 2
PRICE_CHANGE_CAP = 20


@dataclass(frozen=True)
class AlphaBreakdown:
    """Per-component contributions to an alpha score."""
    base: int
    volume_bonus: int
    price_change_points: float
    market_cap_bonus: int
    raw_total: float
    score: int

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _tier_bonus(value: float, tiers: tuple[tuple[int, int], ...]) -> int:
    for threshold, bonus in tiers:
        if value > threshold:
            return bonus
    return 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_breakdown(
    volume: float,
    price_change: float,
    market_cap: Optional[float] = None,
) -> AlphaBreakdown:
    """Compute every scoring component.

    Args:
        volume: 24h volume in USD
        price_change: 24h price change in percent (e.g. 10 for +10%)
        market_cap: market cap in USD, None/0 when unknown

    Returns:
        AlphaBreakdown with the final clamped, rounded score
    """
    volume = parse_number(volume)
    price_change = parse_number(price_change)
    market_cap = parse_number(market_cap)

    volume_bonus = _tier_bonus(volume, VOLUME_TIERS)

    change_points = price_change * PRICE_CHANGE_MULTIPLIER
    change_points = max(-PRICE_CHANGE_CAP, min(PRICE_CHANGE_CAP, change_points))

    # Unknown market cap earns nothing
    mcap_bonus = _tier_bonus(market_cap, MARKET_CAP_TIERS) if market_cap else 0

    raw = BASE_SCORE + volume_bonus + change_points + mcap_bonus
    score = _round_half_up(max(0.0, min(100.0, raw)))

    return AlphaBreakdown(
        base=BASE_SCORE,
        volume_bonus=volume_bonus,
        price_change_points=change_points,
        market_cap_bonus=mcap_bonus,
        raw_total=raw,
        score=score,
    )


def calculate_alpha_score(
    volume: float,
    price_change: float,
    market_cap: Optional[float] = None,
) -> int:
    """Alpha score in [0, 100]."""
    return score_breakdown(volume, price_change, market_cap).score
