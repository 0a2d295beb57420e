"""Source health reporting.

The host application owns the status sink. Anything with an
update_status(source_name, state, message=None) method works; the method
may be sync or async. report_status() never raises, a broken sink only
costs a log line.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from alphafeed.models import SourceHealth, SourceStatus

log = logging.getLogger("alphafeed.status")


class StatusReporter(Protocol):
    def update_status(self, source_name: str, state: SourceStatus, message: str | None = None) -> Any: ...


async def report_status(
    reporter: StatusReporter | None,
    source_name: str,
    state: SourceStatus,
    message: str | None = None,
) -> None:
    """Notify the sink, never raise."""
    if reporter is None:
        return
    try:
        result = reporter.update_status(source_name, state, message)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        log.warning("Status reporter failed for %s (%s): %s", source_name, state.value, e)


class LoggingStatusReporter:
    """Status sink that only logs. Default when the host provides none."""

    def update_status(self, source_name: str, state: SourceStatus, message: str | None = None) -> None:
        level = logging.INFO if state is SourceStatus.ACTIVE else logging.WARNING
        if message:
            log.log(level, "%s: %s (%s)", source_name, state.value, message)
        else:
            log.log(level, "%s: %s", source_name, state.value)


class InMemoryStatusReporter:
    """Keeps the latest state per source plus the full call history."""

    def __init__(self) -> None:
        self.sources: dict[str, SourceHealth] = {}
        self.history: list[tuple[str, SourceStatus, str | None]] = []

    def update_status(self, source_name: str, state: SourceStatus, message: str | None = None) -> None:
        self.history.append((source_name, state, message))
        self.sources[source_name] = SourceHealth(
            name=source_name,
            state=state,
            message=message,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    def state_of(self, source_name: str) -> SourceStatus | None:
        health = self.sources.get(source_name)
        return health.state if health else None

    def calls_for(self, source_name: str) -> list[tuple[SourceStatus, str | None]]:
        return [(state, msg) for name, state, msg in self.history if name == source_name]

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: h.model_dump(mode="json") for name, h in self.sources.items()}
