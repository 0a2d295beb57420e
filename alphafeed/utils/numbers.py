"""Null-safe numeric coercion for provider payloads.

Providers disagree on types: DEXScreener sends prices as strings, Birdeye
sends floats or None, CoinGecko sends null for missing 24h change. Everything
goes through these helpers so a bad field becomes 0 instead of NaN.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any


def parse_number(value: Any) -> float:
    """Coerce any provider value to a finite float. Garbage → 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(n) or math.isinf(n):
        return 0.0
    return n


def format_decimal(value: float) -> str:
    """Render a finite float as a plain decimal string (no exponent, no NaN)."""
    n = parse_number(value)
    if n == int(n):
        return str(int(n))
    # repr gives the shortest round-tripping form; Decimal strips the exponent
    text = format(Decimal(repr(n)), "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def parse_market_cap(value: Any) -> float | None:
    """Market cap is optional: unknown or zero → None."""
    n = parse_number(value)
    return n if n else None


def parse_optional_int(value: Any) -> int | None:
    """Optional count. Missing or non-numeric → None (unknown, not zero)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(n) or math.isinf(n):
        return None
    return int(n)
