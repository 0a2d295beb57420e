"""Cross-source deduplication.

Two sources can report the same asset. Records are grouped by mint and
the highest alpha score wins (first seen wins a tie).

Sources do not share an identifier namespace: CoinGecko reports "solana"
where DEXScreener and Birdeye report the wrapped SOL mint address. An
IdentityResolver maps such provider ids onto one canonical mint before
grouping. Without aliases, raw mints are compared as opaque strings.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from alphafeed.models import Token

log = logging.getLogger("alphafeed.dedup")


class IdentityResolver:
    """Alias table from provider identifiers to canonical mints.

    Keys are either "<Source>:<id>" (scoped to one source) or a bare id
    (any source). Scoped keys take precedence.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None):
        self._aliases = {
            str(k).strip(): str(v).strip()
            for k, v in (aliases or {}).items()
            if str(k).strip() and str(v).strip()
        }

    def __len__(self) -> int:
        return len(self._aliases)

    def canonical_mint(self, mint: str, source: str = "") -> str:
        if source:
            scoped = self._aliases.get(f"{source}:{mint}")
            if scoped:
                return scoped
        return self._aliases.get(mint, mint)

    def resolve(self, token: Token) -> Token:
        canonical = self.canonical_mint(token.mint, token.source)
        if canonical == token.mint:
            return token
        return token.model_copy(update={"mint": canonical})


def deduplicate_tokens(
    tokens: Iterable[Token],
    resolver: IdentityResolver | None = None,
) -> list[Token]:
    """One record per mint, keeping the highest alpha score."""
    unique: dict[str, Token] = {}
    dropped = 0

    for token in tokens:
        if resolver is not None:
            token = resolver.resolve(token)
        existing = unique.get(token.mint)
        if existing is None:
            unique[token.mint] = token
            continue
        dropped += 1
        if token.alpha_score > existing.alpha_score:
            unique[token.mint] = token

    if dropped:
        log.debug("dedup collapsed %d duplicate records", dropped)
    return list(unique.values())
