"""Unified token schema for every market-data source.

Every provider payload is normalized into a Token before it leaves its
Source. Numeric quantities are carried as decimal strings so downstream
consumers never see float artifacts or NaN.

Wire names are camelCase (volume24h, marketCap, alphaScore); Python
attributes are snake_case.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alphafeed.utils.numbers import format_decimal, parse_number


# ── Enums ────────────────────────────────────────────────────────────


class SourceStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    ERROR = "error"


class FailurePolicy(str, Enum):
    PROPAGATE = "propagate"            # report error, raise to the aggregator
    DEGRADE_EMPTY = "degrade_empty"    # report warning, yield no tokens


DEFAULT_DECIMALS = 9


# ── Token ────────────────────────────────────────────────────────────


def _is_decimal_string(value: str) -> bool:
    try:
        return Decimal(value).is_finite()
    except InvalidOperation:
        return False


class Token(BaseModel):
    """One normalized token record."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    symbol: str
    name: str
    mint: str = Field(min_length=1)
    decimals: int = DEFAULT_DECIMALS
    price: str = "0"
    volume_24h: str = Field(default="0", alias="volume24h")
    price_change_24h: str = Field(default="0", alias="priceChange24h")
    market_cap: str | None = Field(default=None, alias="marketCap")
    holders: int | None = None
    alpha_score: int = Field(ge=0, le=100, alias="alphaScore")
    source: str = ""

    @field_validator("mint")
    @classmethod
    def _mint_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("mint must be non-empty")
        return v

    @field_validator("price", "volume_24h", "price_change_24h", mode="before")
    @classmethod
    def _coerce_decimal(cls, v: Any) -> str:
        if isinstance(v, str) and _is_decimal_string(v):
            return v
        return format_decimal(parse_number(v))

    @field_validator("market_cap", mode="before")
    @classmethod
    def _coerce_market_cap(cls, v: Any) -> str | None:
        if v is None:
            return None
        n = parse_number(v)
        return format_decimal(n) if n else None

    @property
    def volume_value(self) -> float:
        return parse_number(self.volume_24h)

    @property
    def market_cap_value(self) -> float | None:
        return parse_number(self.market_cap) if self.market_cap is not None else None

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase field names."""
        return self.model_dump(by_alias=True)


class SourceHealth(BaseModel):
    """Last reported state of one source."""

    name: str
    state: SourceStatus
    message: str | None = None
    updated_at: str = ""
