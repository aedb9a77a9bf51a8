"""Event poller - turns repeated snapshot queries into a stream of new events."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Sequence, Union

from ledger_poller.cursor.store import InMemoryCursorStore, filter_key
from ledger_poller.errors import FilterQueryError
from ledger_poller.interfaces.client import EventQueryClient
from ledger_poller.models.config import EVICTION_INTERVAL_MS, PollerConfig
from ledger_poller.models.events import LedgerEvent
from ledger_poller.models.status import PollerStatus

log = logging.getLogger(__name__)

EventsCallback = Callable[[list[LedgerEvent]], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ignore_events(events: list[LedgerEvent]) -> None:
    pass


def _log_error(error: Exception) -> None:
    log.error("EventPoller error: %s", error, exc_info=error)


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    """Call a sync or async callback."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class EventPoller:
    """Polls an event query endpoint for every filter on a fixed cadence.

    Each fetch cycle queries the latest page of events per filter, drops the
    ones already delivered (watermark plus a bounded seen-id map per filter),
    and hands the remaining events of all filters to ``on_new_events`` as one
    batch sorted by event time. Failures only ever surface via ``on_error``.

    A second task evicts stale seen ids every five minutes so memory stays
    bounded. ``start()`` and ``stop()`` must be called from a running event
    loop.
    """

    def __init__(
        self,
        client: EventQueryClient,
        filters: Sequence[Any],
        config: PollerConfig | None = None,
        *,
        on_new_events: EventsCallback | None = None,
        on_error: ErrorCallback | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if not filters:
            raise ValueError("at least one filter is required")

        self._client = client
        self._filters = list(filters)
        self._config = config or PollerConfig()
        self._on_new_events = on_new_events or _ignore_events
        self._on_error = on_error or _log_error
        self._clock = clock or _now_ms
        self._start_time = self._clock() if self._config.start_from_now else 0

        # Equal filters share one cursor and are queried once per cycle
        self._targets: dict[str, Any] = {}
        for f in self._filters:
            self._targets.setdefault(filter_key(f), f)
        self._store = InMemoryCursorStore(self._targets, self._start_time)

        self._running = False
        self._poll_task: asyncio.Task | None = None
        self._evict_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

        log.info(
            "EventPoller initialized at %s",
            datetime.fromtimestamp(self._start_time / 1000, tz=timezone.utc).isoformat(),
        )

    # ── Properties ────────────────────────────────────────

    @property
    def is_polling(self) -> bool:
        return self._running

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def store(self) -> InMemoryCursorStore:
        return self._store

    # ── Lifecycle ─────────────────────────────────────────

    def start(self) -> None:
        """Run a fetch cycle now, then keep polling until ``stop()``."""
        if self._running:
            log.warning("EventPoller is already running")
            return

        self._running = True
        log.info("Starting EventPoller...")
        self._poll_task = asyncio.create_task(self._poll_loop(), name="event-poller-fetch")
        self._evict_task = asyncio.create_task(self._evict_loop(), name="event-poller-evict")
        log.info(
            "EventPoller started: %d filter(s) every %dms",
            len(self._targets), self._config.interval_ms,
        )

    def stop(self) -> None:
        """Cancel both schedules and return immediately.

        A fetch cycle already in flight is left to finish; its callbacks may
        still fire once.
        """
        if not self._running:
            log.warning("EventPoller is not running")
            return

        for task in (self._poll_task, self._evict_task):
            if task is not None:
                task.cancel()
        self._poll_task = None
        self._evict_task = None
        self._running = False
        log.info("EventPoller stopped")

    async def wait_closed(self) -> None:
        """Wait for fetch cycles that were still in flight at ``stop()``."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _poll_loop(self) -> None:
        """Fixed-rate fetch schedule. Cycles never overlap."""
        loop = asyncio.get_running_loop()
        interval = self._config.interval_ms / 1000
        next_tick = loop.time()

        while True:
            cycle = asyncio.create_task(self._scheduled_cycle())
            self._inflight.add(cycle)
            cycle.add_done_callback(self._inflight.discard)
            # stop() cancels this loop, not the cycle
            await asyncio.shield(cycle)

            next_tick += interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Overran the interval; poll again right away
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def _scheduled_cycle(self) -> None:
        try:
            await self.poll_once()
        except Exception:
            log.exception("Fetch cycle failed")

    async def _evict_loop(self) -> None:
        while True:
            await asyncio.sleep(EVICTION_INTERVAL_MS / 1000)
            try:
                self.evict_now()
            except Exception:
                log.exception("Eviction cycle failed")

    # ── Cycles ────────────────────────────────────────────

    async def poll_once(self) -> list[LedgerEvent]:
        """Run one fetch cycle across all filters.

        Returns the batch handed to ``on_new_events`` (empty if nothing new).
        """
        batch: list[LedgerEvent] = []
        try:
            results = await asyncio.gather(
                *(self._fetch_new_events_for_filter(key, f) for key, f in self._targets.items()),
                return_exceptions=True,
            )

            for result in results:
                if isinstance(result, Exception):
                    await self._report(result)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    batch.extend(result)

            if batch:
                batch.sort(key=lambda e: e.timestamp_ms)
                log.info("Found %d new events", len(batch))
                await _invoke(self._on_new_events, batch)

        except Exception as exc:
            await self._report(exc)

        return batch

    async def _report(self, error: Exception) -> None:
        """Hand an error to on_error. A raising handler is logged, not propagated."""
        try:
            await _invoke(self._on_error, error)
        except Exception:
            log.exception("Error callback failed while reporting %r", error)

    async def _fetch_new_events_for_filter(self, key: str, filter: Any) -> list[LedgerEvent]:
        """Query one filter and record the events not delivered before."""
        try:
            events = await self._client.query_events(
                filter, limit=self._config.page_size, order="descending",
            )
        except Exception as exc:
            log.error("Event query failed for %s: %s", key, exc)
            error = FilterQueryError(key)
            error.__cause__ = exc
            await self._report(error)
            return []

        if not events:
            return []

        new_events: list[LedgerEvent] = []
        picked: set[str] = set()
        for event in events:
            if event.key in picked or not self._store.is_new(key, event):
                continue
            picked.add(event.key)
            new_events.append(event)

        now = self._clock()
        for event in new_events:
            self._store.record(key, event, now)

        if new_events:
            log.debug(
                "%d new events for %s (watermark %d)",
                len(new_events), key, self._store.watermark(key),
            )

        return new_events

    def evict_now(self) -> int:
        """Evict stale and excess seen ids for every filter."""
        removed = self._store.evict(
            self._clock(),
            self._config.memory_window_ms,
            self._config.max_stored_events,
        )
        log.info(
            "Cleaned up %d old events. Current memory usage: %s",
            removed, self._memory_usage(),
        )
        return removed

    # ── Status ────────────────────────────────────────────

    def _memory_usage(self) -> str:
        return f"{self._store.tracked_count()} events tracked"

    def get_status(self) -> PollerStatus:
        return PollerStatus(
            is_polling=self._running,
            filters=list(self._filters),
            interval=self._config.interval_ms,
            start_time=self._start_time,
            memory_usage=self._memory_usage(),
        )
