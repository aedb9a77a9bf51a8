"""Read-only status snapshot of a running or stopped poller."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class PollerStatus:
    is_polling: bool
    filters: list[Any]
    interval: int  # ms
    start_time: int  # initial watermark, ms since epoch
    memory_usage: str  # e.g. "12 events tracked"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
