"""Per-source token cache.

One entry per source, 30s TTL by default. Entries are immutable and
replaced by a single dict assignment, so a failed refresh leaves the
previous entry exactly as it was.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from alphafeed.models import Token

log = logging.getLogger("alphafeed.cache")

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry:
    tokens: tuple[Token, ...]
    timestamp: float


class SourceCache:
    """In-memory TTL cache keyed by source name."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, name: str) -> tuple[Token, ...] | None:
        """Tokens for a source if its entry is younger than the TTL."""
        entry = self._entries.get(name)
        if entry is None:
            return None
        age = self._clock() - entry.timestamp
        if age >= self.ttl_seconds:
            return None
        log.debug("cache hit for %s (%.1fs old)", name, age)
        return entry.tokens

    def store(self, name: str, tokens: Iterable[Token]) -> CacheEntry:
        entry = CacheEntry(tokens=tuple(tokens), timestamp=self._clock())
        self._entries[name] = entry
        return entry

    def entry(self, name: str) -> CacheEntry | None:
        """Raw entry, stale or not."""
        return self._entries.get(name)

    def invalidate(self, name: str | None = None) -> None:
        if name is None:
            self._entries.clear()
        else:
            self._entries.pop(name, None)
