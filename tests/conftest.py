"""Shared fixtures for ledger_poller tests."""

from __future__ import annotations

import pytest

from ledger_poller.engine.poller import EventPoller
from ledger_poller.models.config import PollerConfig

from tests.factories import BASE_TIME, MINT_FILTER, TRANSFER_FILTER
from tests.mocks import FakeClock, MockEventClient, Recorder


def make_test_config(**overrides) -> PollerConfig:
    """Build a PollerConfig suitable for testing."""
    defaults = dict(
        interval_ms=1000,
        memory_window_ms=60_000,
        max_stored_events=100,
        start_from_now=True,
    )
    defaults.update(overrides)
    return PollerConfig(**defaults)


@pytest.fixture
def clock():
    return FakeClock(BASE_TIME)


@pytest.fixture
def client():
    return MockEventClient()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
async def make_poller(client, recorder, clock):
    """Factory for pollers wired to the mock client, recorder and clock."""
    created: list[EventPoller] = []

    def _make(filters=None, **config_overrides) -> EventPoller:
        p = EventPoller(
            client,
            filters or [TRANSFER_FILTER, MINT_FILTER],
            make_test_config(**config_overrides),
            on_new_events=recorder.on_new_events,
            on_error=recorder.on_error,
            clock=clock,
        )
        created.append(p)
        return p

    yield _make

    for p in created:
        if p.is_polling:
            p.stop()
        await p.wait_closed()


@pytest.fixture
def poller(make_poller):
    """EventPoller over the transfer and mint filters."""
    return make_poller()
