"""Ledger event models returned by an event query client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventId:
    """Identifies one event: the transaction it came from plus its index."""

    tx_ref: str
    event_seq: int | str

    def __str__(self) -> str:
        return f"{self.tx_ref}:{self.event_seq}"


@dataclass(frozen=True)
class LedgerEvent:
    """An event observed on the ledger. Immutable once observed."""

    event_id: EventId
    timestamp_ms: int  # ms since epoch, ledger close time
    payload: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # RPCs commonly hand timestamps over as strings
        if not isinstance(self.timestamp_ms, int):
            object.__setattr__(self, "timestamp_ms", int(self.timestamp_ms))

    @property
    def key(self) -> str:
        """Dedup key: ``"<tx_ref>:<event_seq>"``."""
        return str(self.event_id)


@dataclass(frozen=True)
class SorobanEventPayload:
    """Payload carried by events read from Soroban RPC."""

    event_type: str
    contract_id: str | None
    ledger: int
    topic: tuple[str, ...]  # decoded symbols, raw XDR where not a symbol
    value_xdr: str
