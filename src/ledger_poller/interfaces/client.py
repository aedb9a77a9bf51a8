"""EventQueryClient protocol - the ledger's event query endpoint."""

from __future__ import annotations

from typing import Any, Literal, Protocol

from ledger_poller.models.events import LedgerEvent

SortOrder = Literal["ascending", "descending"]


class EventQueryClient(Protocol):
    """Queries a ledger for events matching a filter.

    Must be idempotent and side-effect free from the poller's point of view.
    """

    async def query_events(
        self,
        filter: Any,
        limit: int,
        order: SortOrder = "descending",
    ) -> list[LedgerEvent]:
        """Return up to ``limit`` matching events in the requested order."""
        ...
