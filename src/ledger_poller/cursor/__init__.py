"""Per-filter cursor state."""

from ledger_poller.cursor.store import CursorState, InMemoryCursorStore, filter_key

__all__ = ["CursorState", "InMemoryCursorStore", "filter_key"]
