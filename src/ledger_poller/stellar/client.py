"""Soroban RPC event query client."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Mapping

from stellar_sdk import SorobanServerAsync, scval, xdr
from stellar_sdk.soroban_rpc import EventFilter, EventFilterType, EventInfo

from ledger_poller.interfaces.client import SortOrder
from ledger_poller.models.events import EventId, LedgerEvent, SorobanEventPayload

log = logging.getLogger(__name__)

_WILDCARDS = ("*", "**")


def _encode_topic(segment: str) -> str:
    """Encode a topic segment as base64 XDR; wildcards pass through."""
    if segment in _WILDCARDS:
        return segment
    return scval.to_symbol(segment).to_xdr()


def _decode_topic(topic_xdr: str) -> str:
    """Decode a base64 XDR symbol. Non-symbol values are returned as-is."""
    try:
        return scval.from_symbol(xdr.SCVal.from_xdr(topic_xdr))
    except Exception:
        return topic_xdr


def build_event_filter(spec: Mapping[str, Any]) -> EventFilter:
    """Build a stellar_sdk EventFilter from a plain filter mapping.

    Keys: ``type`` (contract/system/diagnostic, default contract),
    ``contract_ids`` and ``topics`` (list of segment lists, symbols or "*").
    """
    topics = spec.get("topics")
    return EventFilter(
        event_type=EventFilterType(spec.get("type", "contract")),
        contract_ids=list(spec.get("contract_ids") or []) or None,
        topics=[[_encode_topic(s) for s in segments] for segments in topics] if topics else None,
    )


def event_seq_from_id(event_id: str) -> int:
    """Soroban event ids look like ``"<toid>-<index>"``; return the index."""
    return int(event_id.rsplit("-", 1)[-1])


def to_ledger_event(info: EventInfo) -> LedgerEvent:
    """Map a raw Soroban EventInfo to a LedgerEvent."""
    return LedgerEvent(
        event_id=EventId(
            tx_ref=info.transaction_hash,
            event_seq=event_seq_from_id(info.id),
        ),
        timestamp_ms=int(info.ledger_close_at.timestamp() * 1000),
        payload=SorobanEventPayload(
            event_type=str(info.event_type),
            contract_id=info.contract_id,
            ledger=info.ledger,
            topic=tuple(_decode_topic(t) for t in info.topic),
            value_xdr=info.value,
        ),
    )


class SorobanEventClient:
    """Reads contract events from Soroban RPC.

    Soroban's getEvents only pages forward from a start ledger, so a query
    scans the last ``lookback_ledgers`` ledgers and keeps the newest
    ``limit`` matches. Events from failed contract calls are skipped.
    """

    def __init__(
        self,
        rpc_url: str,
        lookback_ledgers: int = 720,
        fetch_limit: int = 200,
        max_pages: int = 10,
        server: SorobanServerAsync | None = None,
    ) -> None:
        self._server = server or SorobanServerAsync(rpc_url)
        self._rpc_url = rpc_url
        self._lookback = lookback_ledgers
        self._fetch_limit = fetch_limit
        self._max_pages = max_pages

    async def close(self) -> None:
        """Close the underlying aiohttp session."""
        await self._server.close()

    async def __aenter__(self) -> SorobanEventClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def query_events(
        self,
        filter: Mapping[str, Any],
        limit: int,
        order: SortOrder = "descending",
    ) -> list[LedgerEvent]:
        filters = [build_event_filter(filter)]

        latest = (await self._server.get_latest_ledger()).sequence
        start = max(1, latest - self._lookback)

        while True:
            window, complete, last_ledger = await self._scan(filters, start, limit, order)
            if complete or order == "ascending":
                break

            # Page cap hit before reaching the newest ledger: move the window
            # start at least halfway towards `latest` and scan again
            next_start = min(latest, max(last_ledger, (start + latest + 1) // 2))
            if next_start <= start:
                log.warning(
                    "Stopped after %d pages at ledger %d; newer matches may be missing",
                    self._max_pages, start,
                )
                break
            log.debug("Page cap hit from ledger %d, rescanning from %d", start, next_start)
            start = next_start

        events = list(window)
        if order == "descending":
            events.reverse()
        else:
            events = events[:limit]

        log.debug("Queried %d events from %s (ledgers %d-%d)", len(events), self._rpc_url, start, latest)
        return events

    async def _scan(
        self,
        filters: list[EventFilter],
        start: int,
        limit: int,
        order: SortOrder,
    ) -> tuple[deque[LedgerEvent], bool, int]:
        """Page forward from ``start`` for at most ``max_pages`` pages.

        Returns the kept events, whether the scan ran to the end, and the
        ledger of the last event read.
        """
        # Ascending wants the oldest `limit`, descending the newest
        window: deque[LedgerEvent] = deque(maxlen=limit if order == "descending" else None)
        cursor: str | None = None
        last_ledger = start

        for _ in range(self._max_pages):
            if cursor:
                response = await self._server.get_events(
                    filters=filters, cursor=cursor, limit=self._fetch_limit,
                )
            else:
                response = await self._server.get_events(
                    start_ledger=start, filters=filters, limit=self._fetch_limit,
                )

            for info in response.events:
                last_ledger = info.ledger
                if not info.in_successful_contract_call:
                    continue
                try:
                    window.append(to_ledger_event(info))
                except (ValueError, AttributeError) as exc:
                    log.warning("Skipping malformed event %s: %s", info.id, exc)

            if order == "ascending" and len(window) >= limit:
                return window, True, last_ledger
            if len(response.events) < self._fetch_limit:
                return window, True, last_ledger
            cursor = response.cursor or response.events[-1].id

        return window, False, last_ledger
