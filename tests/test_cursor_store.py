"""Cursor store: new-event classification, recording and eviction."""

from __future__ import annotations

import pytest

from ledger_poller.cursor.store import InMemoryCursorStore, filter_key

from tests.factories import BASE_TIME, MINT_FILTER, TRANSFER_FILTER, make_event

A = filter_key(TRANSFER_FILTER)
B = filter_key(MINT_FILTER)


@pytest.fixture
def cursors():
    return InMemoryCursorStore([A, B], start_time=BASE_TIME)


# ── Filter keys ───────────────────────────────────────────────────


def test_filter_key_ignores_field_order():
    first = {"type": "contract", "contract_ids": ["C1"]}
    second = {"contract_ids": ["C1"], "type": "contract"}
    assert filter_key(first) == filter_key(second)


def test_filter_key_keeps_list_order():
    """Lists are not canonicalized: reordered ids are a different filter."""
    first = {"contract_ids": ["C1", "C2"]}
    second = {"contract_ids": ["C2", "C1"]}
    assert filter_key(first) != filter_key(second)


# ── is_new ────────────────────────────────────────────────────────


def test_event_newer_than_watermark_is_new(cursors):
    assert cursors.is_new(A, make_event(1, timestamp_ms=BASE_TIME + 1))


def test_event_at_or_before_watermark_is_not_new(cursors):
    assert not cursors.is_new(A, make_event(1, timestamp_ms=BASE_TIME))
    assert not cursors.is_new(A, make_event(2, timestamp_ms=BASE_TIME - 5))


def test_seen_event_is_not_new(cursors):
    event = make_event(1)
    cursors.record(A, event, now=BASE_TIME)
    # Roll the watermark back out of the way to isolate the seen-id check
    cursors.state(A).last_processed_time = 0
    assert not cursors.is_new(A, event)


def test_is_new_has_no_side_effects(cursors):
    event = make_event(1)
    assert cursors.is_new(A, event)
    assert cursors.is_new(A, event)
    assert cursors.seen_count(A) == 0
    assert cursors.watermark(A) == BASE_TIME


def test_filters_are_independent(cursors):
    event = make_event(1)
    cursors.record(A, event, now=BASE_TIME)
    assert not cursors.is_new(A, event)
    assert cursors.is_new(B, event)


def test_unknown_filter_key_raises(cursors):
    with pytest.raises(KeyError):
        cursors.is_new("nope", make_event(1))


# ── record ────────────────────────────────────────────────────────


def test_record_advances_watermark(cursors):
    cursors.record(A, make_event(5), now=BASE_TIME)
    assert cursors.watermark(A) == BASE_TIME + 5000
    assert cursors.state(A).seen_ids[make_event(5).key] == BASE_TIME


def test_record_never_lowers_watermark(cursors):
    cursors.record(A, make_event(5), now=BASE_TIME)
    cursors.record(A, make_event(2), now=BASE_TIME)
    assert cursors.watermark(A) == BASE_TIME + 5000
    assert cursors.seen_count(A) == 2


def test_tracked_count_sums_filters(cursors):
    cursors.record(A, make_event(1), now=BASE_TIME)
    cursors.record(A, make_event(2), now=BASE_TIME)
    cursors.record(B, make_event(3), now=BASE_TIME)
    assert cursors.tracked_count() == 3


# ── evict ─────────────────────────────────────────────────────────


def test_evict_drops_entries_older_than_window(cursors):
    cursors.record(A, make_event(1), now=1_000)
    cursors.record(A, make_event(2), now=5_000)

    removed = cursors.evict(now=10_000, memory_window=6_000, max_stored=100)

    assert removed == 1
    assert list(cursors.state(A).seen_ids) == [make_event(2).key]


def test_evict_keeps_entry_exactly_at_cutoff(cursors):
    cursors.record(A, make_event(1), now=4_000)
    cursors.evict(now=10_000, memory_window=6_000, max_stored=100)
    assert cursors.seen_count(A) == 1


def test_evict_caps_size_dropping_oldest_first(cursors):
    for n, seen_at in [(1, 300), (2, 100), (3, 400), (4, 200)]:
        cursors.record(A, make_event(n), now=seen_at)

    removed = cursors.evict(now=500, memory_window=10_000, max_stored=2)

    assert removed == 2
    assert set(cursors.state(A).seen_ids) == {make_event(1).key, make_event(3).key}


def test_evict_window_runs_before_size_cap(cursors):
    cursors.record(A, make_event(1), now=100)
    cursors.record(A, make_event(2), now=9_000)
    cursors.record(A, make_event(3), now=9_500)

    cursors.evict(now=10_000, memory_window=5_000, max_stored=2)

    assert set(cursors.state(A).seen_ids) == {make_event(2).key, make_event(3).key}


def test_evict_does_not_touch_watermark(cursors):
    cursors.record(A, make_event(9), now=0)
    cursors.evict(now=10_000_000, memory_window=0, max_stored=0)
    assert cursors.seen_count(A) == 0
    assert cursors.watermark(A) == BASE_TIME + 9000


def test_evict_is_idempotent(cursors):
    for n in range(1, 6):
        cursors.record(A, make_event(n), now=n * 100)
    first = cursors.evict(now=1_000, memory_window=700, max_stored=2)
    snapshot = dict(cursors.state(A).seen_ids)
    second = cursors.evict(now=1_000, memory_window=700, max_stored=2)

    assert first == 3
    assert second == 0
    assert cursors.state(A).seen_ids == snapshot


def test_evict_empty_filter_is_noop(cursors):
    assert cursors.evict(now=BASE_TIME, memory_window=0, max_stored=0) == 0
    assert cursors.tracked_count() == 0
