"""Protocol interfaces for ledger_poller components."""

from ledger_poller.interfaces.client import EventQueryClient, SortOrder

__all__ = ["EventQueryClient", "SortOrder"]
