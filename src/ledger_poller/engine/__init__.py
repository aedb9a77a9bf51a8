"""Polling engine."""

from ledger_poller.engine.poller import EventPoller

__all__ = ["EventPoller"]
