"""Tests for the current-snapshot store."""

from dataclasses import replace
from decimal import Decimal

import pytest

from relay_app.models.market import MarketSnapshot
from relay_app.state.store import StateStore


class TestStateStore:
    """Test StateStore behaviour."""

    def test_starts_with_zero_state(self):
        store = StateStore()

        assert store.current().is_empty
        assert store.sequence == 0
        assert store.updated_at is None
        assert store.age_seconds() is None

    def test_custom_initial_snapshot(self):
        initial = MarketSnapshot.empty("XAUUSD")
        assert StateStore(initial).current() is initial

    def test_update_replaces_whole_snapshot(self, sample_snapshot):
        store = StateStore()
        previous = store.update(sample_snapshot)

        assert previous.is_empty
        assert store.current() is sample_snapshot
        assert store.sequence == 1
        assert store.updated_at is not None
        assert store.age_seconds() >= 0

    def test_last_writer_wins(self, sample_snapshot):
        store = StateStore()
        newer = replace(sample_snapshot, bid=Decimal("1.1"), zones=())

        store.update(sample_snapshot)
        store.update(newer)

        assert store.current() is newer
        assert store.current().zones == ()
        assert store.sequence == 2

    @pytest.mark.parametrize("count", [1, 3, 50])
    def test_last_of_many_updates_wins(self, sample_snapshot, count):
        store = StateStore()
        snapshots = [replace(sample_snapshot, bid=Decimal("1.1") + Decimal(i) / 1000) for i in range(count)]

        for previous_expected, snapshot in zip([None] + snapshots, snapshots):
            previous = store.update(snapshot)
            if previous_expected is not None:
                assert previous is previous_expected

        assert store.current() is snapshots[-1]
        assert store.current().bid == Decimal("1.1") + Decimal(count - 1) / 1000
        assert store.sequence == count

    def test_readers_keep_consistent_reference(self, sample_snapshot):
        store = StateStore()
        store.update(sample_snapshot)
        held = store.current()

        store.update(replace(sample_snapshot, bid=Decimal("2")))

        assert held.bid == Decimal("1.07512")
