"""alphafeed: Solana token market data aggregation.

Fetches DEXScreener, Birdeye and CoinGecko, normalizes into one Token
schema, scores each token (alpha score 0-100), filters and deduplicates.

Pipeline: alphafeed/aggregator.py
Sources:  alphafeed/sources.py (fetch + normalize per provider)
Scoring:  alphafeed/scoring.py
"""

from alphafeed.aggregator import CycleReport, TokenAggregator
from alphafeed.cache import CacheEntry, SourceCache
from alphafeed.config import ConfigError, Settings, load_settings
from alphafeed.dedup import IdentityResolver, deduplicate_tokens
from alphafeed.filters import FilterConfig, apply_filters, passes_filters
from alphafeed.models import FailurePolicy, SourceStatus, Token
from alphafeed.scoring import calculate_alpha_score, score_breakdown
from alphafeed.sources import BirdeyeSource, CoinGeckoSource, DexScreenerSource, TokenSource
from alphafeed.status import InMemoryStatusReporter, LoggingStatusReporter, StatusReporter

__all__ = [
    "BirdeyeSource",
    "CacheEntry",
    "CoinGeckoSource",
    "ConfigError",
    "CycleReport",
    "DexScreenerSource",
    "FailurePolicy",
    "FilterConfig",
    "IdentityResolver",
    "InMemoryStatusReporter",
    "LoggingStatusReporter",
    "Settings",
    "SourceCache",
    "SourceStatus",
    "StatusReporter",
    "Token",
    "TokenAggregator",
    "TokenSource",
    "apply_filters",
    "calculate_alpha_score",
    "deduplicate_tokens",
    "load_settings",
    "passes_filters",
    "score_breakdown",
]
