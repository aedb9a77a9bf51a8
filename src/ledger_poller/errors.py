"""Exceptions raised or reported by the poller."""

from __future__ import annotations


class PollerError(Exception):
    """Base class for ledger_poller errors."""


class FilterQueryError(PollerError):
    """A single filter's event query failed during a fetch cycle.

    The underlying transport or RPC error is attached as ``__cause__``.
    """

    def __init__(self, filter_key: str, message: str | None = None) -> None:
        self.filter_key = filter_key
        super().__init__(message or f"Event query failed for filter {filter_key}")
