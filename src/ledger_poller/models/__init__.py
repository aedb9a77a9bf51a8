"""Data models for ledger_poller."""

from ledger_poller.models.events import EventId, LedgerEvent, SorobanEventPayload
from ledger_poller.models.config import (
    DEFAULT_PAGE_SIZE,
    EVICTION_INTERVAL_MS,
    AppConfig,
    PollerConfig,
)
from ledger_poller.models.status import PollerStatus

__all__ = [
    "EventId", "LedgerEvent", "SorobanEventPayload",
    "DEFAULT_PAGE_SIZE", "EVICTION_INTERVAL_MS", "AppConfig", "PollerConfig",
    "PollerStatus",
]
