"""In-memory cursor store: watermarks and bounded seen-id maps per filter."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ledger_poller.models.events import LedgerEvent

log = logging.getLogger(__name__)


def filter_key(filter: Any) -> str:
    """Canonical serialization of a filter, used as its cursor key.

    Object keys are sorted so field order does not matter. List order still
    does: two filters that differ only in list order get separate cursors.
    """
    return json.dumps(filter, sort_keys=True, separators=(",", ":"), default=str)


@dataclass
class CursorState:
    """Dedup state for one filter."""

    last_processed_time: int
    # event key -> wall-clock ms when first recorded; insertion ordered
    seen_ids: dict[str, int] = field(default_factory=dict)


class InMemoryCursorStore:
    """Holds one CursorState per filter key for the life of the process.

    Nothing is persisted: a restart starts over from the initial watermark.
    """

    def __init__(self, filter_keys: Iterable[str], start_time: int) -> None:
        self._states: dict[str, CursorState] = {
            key: CursorState(last_processed_time=start_time) for key in filter_keys
        }

    def state(self, filter_key: str) -> CursorState:
        return self._states[filter_key]

    def keys(self) -> list[str]:
        return list(self._states)

    def is_new(self, filter_key: str, event: LedgerEvent) -> bool:
        state = self._states[filter_key]
        return (
            event.timestamp_ms > state.last_processed_time
            and event.key not in state.seen_ids
        )

    def record(self, filter_key: str, event: LedgerEvent, now: int) -> None:
        state = self._states[filter_key]
        state.seen_ids[event.key] = now
        if event.timestamp_ms > state.last_processed_time:
            state.last_processed_time = event.timestamp_ms

    def evict(self, now: int, memory_window: int, max_stored: int) -> int:
        """Remove seen ids older than the window, then cap each map's size.

        Entries recorded exactly at ``now - memory_window`` are kept.
        Watermarks are never touched.
        """
        cutoff = now - memory_window
        removed = 0

        for key, state in self._states.items():
            if not state.seen_ids:
                continue

            stale = [eid for eid, seen_at in state.seen_ids.items() if seen_at < cutoff]
            for eid in stale:
                del state.seen_ids[eid]
            removed += len(stale)

            excess = len(state.seen_ids) - max_stored
            if excess > 0:
                # sorted() is stable, so equal insertion times keep arrival order
                oldest = sorted(state.seen_ids.items(), key=lambda item: item[1])
                for eid, _ in oldest[:excess]:
                    del state.seen_ids[eid]
                removed += excess

            if stale or excess > 0:
                log.debug(
                    "Evicted %d seen ids for %s (%d left)",
                    len(stale) + max(excess, 0), key, len(state.seen_ids),
                )

        return removed

    def watermark(self, filter_key: str) -> int:
        return self._states[filter_key].last_processed_time

    def seen_count(self, filter_key: str) -> int:
        return len(self._states[filter_key].seen_ids)

    def tracked_count(self) -> int:
        return sum(len(state.seen_ids) for state in self._states.values())
