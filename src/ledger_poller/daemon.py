"""Daemon runner - wires the Soroban client and the poller together."""

from __future__ import annotations

import asyncio
import logging
import signal

from ledger_poller.engine.poller import EventsCallback, EventPoller
from ledger_poller.models.config import AppConfig
from ledger_poller.stellar.client import SorobanEventClient

log = logging.getLogger(__name__)


def build_poller(
    cfg: AppConfig,
    client: SorobanEventClient,
    on_new_events: EventsCallback | None = None,
) -> EventPoller:
    """Build an EventPoller from daemon configuration."""
    return EventPoller(
        client,
        cfg.filters,
        cfg.to_poller_config(),
        on_new_events=on_new_events,
    )


async def run_daemon(
    cfg: AppConfig,
    on_new_events: EventsCallback | None = None,
) -> None:
    """Poll until SIGINT/SIGTERM, then shut down cleanly."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    log.info("Starting ledger poller")
    log.info("  RPC: %s", cfg.rpc_url)
    log.info("  Filters: %d", len(cfg.filters))
    log.info("  Interval: %dms", cfg.interval_ms)

    async with SorobanEventClient(
        cfg.rpc_url,
        lookback_ledgers=cfg.lookback_ledgers,
        fetch_limit=cfg.fetch_limit,
    ) as client:
        poller = build_poller(cfg, client, on_new_events)
        poller.start()
        try:
            await stop_event.wait()
        finally:
            poller.stop()
            await poller.wait_closed()
            log.info("Poller shut down cleanly (%s)", poller.get_status().memory_usage)
