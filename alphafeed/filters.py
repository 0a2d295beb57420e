"""Optional threshold filters applied before deduplication.

Every threshold is optional. An unset threshold does not constrain, and a
config with nothing set is a no-op rather than reject-everything.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel

from alphafeed.models import Token


class FilterConfig(BaseModel):
    min_volume_24h: Optional[float] = None
    max_market_cap: Optional[float] = None
    min_alpha_score: Optional[float] = None

    @property
    def is_configured(self) -> bool:
        return any(
            v is not None
            for v in (self.min_volume_24h, self.max_market_cap, self.min_alpha_score)
        )


def passes_filters(token: Token, config: FilterConfig) -> bool:
    """True => keep token."""
    if config.min_volume_24h is not None and token.volume_value < config.min_volume_24h:
        return False

    if config.max_market_cap is not None:
        # Unknown market cap fails a market-cap ceiling
        mcap = token.market_cap_value
        if mcap is None or mcap > config.max_market_cap:
            return False

    if config.min_alpha_score is not None and token.alpha_score < config.min_alpha_score:
        return False

    return True


def apply_filters(tokens: Iterable[Token], config: FilterConfig) -> list[Token]:
    tokens = list(tokens)
    if not config.is_configured:
        return tokens
    return [t for t in tokens if passes_filters(t, config)]
