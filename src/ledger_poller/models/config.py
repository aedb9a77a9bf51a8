"""Configuration models for the poller and the daemon around it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Eviction runs on its own fixed cadence; it is not part of PollerConfig.
EVICTION_INTERVAL_MS = 5 * 60 * 1000

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class PollerConfig:
    """Engine settings. Immutable after construction."""

    interval_ms: int = 5000
    memory_window_ms: int = 60 * 60 * 1000  # how long seen ids are kept
    max_stored_events: int = 1000  # per filter
    start_from_now: bool = True  # False starts the watermark at epoch 0
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if self.memory_window_ms < 0:
            raise ValueError("memory_window_ms must not be negative")
        if self.max_stored_events < 0:
            raise ValueError("max_stored_events must not be negative")
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")


@dataclass
class AppConfig:
    """Complete configuration for the ``ledger-poller`` daemon."""

    # Poller
    interval_ms: int = 5000
    memory_window_ms: int = 60 * 60 * 1000
    max_stored_events: int = 1000
    start_from_now: bool = True
    page_size: int = DEFAULT_PAGE_SIZE

    # Stellar
    network: str = "testnet"
    rpc_url: str = "https://soroban-testnet.stellar.org"
    lookback_ledgers: int = 720  # ~1 hour at 5s ledgers
    fetch_limit: int = 200

    # Logging
    log_level: str = "info"

    # Event filters, one dict per [[filters]] table
    filters: list[dict[str, Any]] = field(default_factory=list)

    def to_poller_config(self) -> PollerConfig:
        return PollerConfig(
            interval_ms=self.interval_ms,
            memory_window_ms=self.memory_window_ms,
            max_stored_events=self.max_stored_events,
            start_from_now=self.start_from_now,
            page_size=self.page_size,
        )
