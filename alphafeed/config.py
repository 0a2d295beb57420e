"""Configuration loader for alphafeed.

Two layers:
- config/sources.yaml: per-source timeouts, limits, retry attempts,
  failure policy, cache TTL and identity aliases (optional file)
- environment (.env via python-dotenv in entry points): filter thresholds
  and the Birdeye API key

Environment:
    TOKENS_MIN_VOLUME_24H   min 24h volume in USD
    TOKENS_MAX_MARKETCAP    max market cap in USD
    TOKENS_MIN_ALPHA        min alpha score (0-100)
    BIRDEYE_API_KEY         falls back to VITE_BIRDEYE_API_KEY
    ALPHAFEED_CONFIG        alternative YAML path
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

from alphafeed.filters import FilterConfig
from alphafeed.models import FailurePolicy

WORKSPACE = Path(__file__).resolve().parent.parent
CONFIG_DIR = WORKSPACE / "config"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "sources.yaml"


class ConfigError(ValueError):
    """Malformed configuration file."""


class SourceSettings(BaseModel):
    enabled: bool = True
    timeout_seconds: float = 10.0
    limit: int = 50
    retry_attempts: int = 2
    on_failure: FailurePolicy = FailurePolicy.PROPAGATE


def _default_sources() -> dict[str, SourceSettings]:
    return {
        "dexscreener": SourceSettings(),
        "birdeye": SourceSettings(retry_attempts=1, on_failure=FailurePolicy.DEGRADE_EMPTY),
        "coingecko": SourceSettings(limit=30),
    }


class Settings(BaseModel):
    cache_ttl_seconds: float = 30.0
    sources: dict[str, SourceSettings] = Field(default_factory=_default_sources)
    price: SourceSettings = Field(default_factory=lambda: SourceSettings(timeout_seconds=5.0))
    identity_aliases: dict[str, str] = Field(default_factory=dict)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    birdeye_api_key: str = ""


def env_number(name: str, env: Mapping[str, str] | None = None) -> float | None:
    """Optional numeric env var. Unset, empty or invalid → None."""
    env = os.environ if env is None else env
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        n = float(raw)
    except ValueError:
        return None
    return None if n != n else n


def load_filter_config(env: Mapping[str, str] | None = None) -> FilterConfig:
    return FilterConfig(
        min_volume_24h=env_number("TOKENS_MIN_VOLUME_24H", env),
        max_market_cap=env_number("TOKENS_MAX_MARKETCAP", env),
        min_alpha_score=env_number("TOKENS_MIN_ALPHA", env),
    )


def load_sources_config(path: Path | None = None) -> dict[str, Any]:
    """Load config/sources.yaml. Missing file → {}."""
    path = path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")
    return data


def load_settings(
    env: Mapping[str, str] | None = None,
    config_path: Path | str | None = None,
) -> Settings:
    env = os.environ if env is None else env
    if config_path is None and env.get("ALPHAFEED_CONFIG"):
        config_path = env["ALPHAFEED_CONFIG"]
    raw = load_sources_config(Path(config_path) if config_path else None)

    # YAML source entries override defaults field by field
    sources = {name: s.model_dump() for name, s in _default_sources().items()}
    for name, overrides in (raw.get("sources") or {}).items():
        sources.setdefault(name, {}).update(overrides or {})

    try:
        return Settings(
            cache_ttl_seconds=raw.get("cache_ttl_seconds", 30.0),
            sources=sources,
            price={"timeout_seconds": 5.0, **(raw.get("price") or {})},
            identity_aliases=raw.get("identity_aliases") or {},
            filters=load_filter_config(env),
            birdeye_api_key=env.get("BIRDEYE_API_KEY") or env.get("VITE_BIRDEYE_API_KEY") or "",
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
