"""Stellar/Soroban integration components."""

from ledger_poller.stellar.client import SorobanEventClient, build_event_filter

__all__ = ["SorobanEventClient", "build_event_filter"]
