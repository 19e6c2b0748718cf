"""Tests for the debounce aggregator state machine."""

from pathlib import Path

import pytest

from csvship.schemas.shipper import ChangeEvent, ChangeKind
from csvship.shipper.debounce import DebounceAggregator, DebounceState


def _event(name: str, kind: ChangeKind = ChangeKind.CREATED) -> ChangeEvent:
    return ChangeEvent(path=Path("/drop") / name, kind=kind)


class TestStates:
    def test_starts_idle(self):
        agg = DebounceAggregator(wait_seconds=5)
        assert agg.state == DebounceState.IDLE
        assert agg.poll(now=100.0) is None

    def test_first_event_accumulates(self):
        agg = DebounceAggregator(wait_seconds=5)
        agg.add(_event("a.csv"), now=0.0)
        assert agg.state == DebounceState.ACCUMULATING

    def test_release_returns_to_idle(self):
        agg = DebounceAggregator(wait_seconds=5)
        agg.add(_event("a.csv"), now=0.0)
        assert agg.poll(now=6.0) is not None
        assert agg.state == DebounceState.IDLE
        assert agg.pending == []

    def test_rejects_non_positive_wait(self):
        with pytest.raises(ValueError):
            DebounceAggregator(wait_seconds=0)


class TestThreshold:
    def test_not_released_before_threshold(self):
        agg = DebounceAggregator(wait_seconds=5)
        agg.add(_event("a.csv"), now=0.0)
        assert agg.poll(now=4.9) is None

    def test_not_released_at_exact_threshold(self):
        agg = DebounceAggregator(wait_seconds=5)
        agg.add(_event("a.csv"), now=0.0)
        assert agg.poll(now=5.0) is None

    def test_released_after_threshold(self):
        agg = DebounceAggregator(wait_seconds=5)
        agg.add(_event("a.csv"), now=0.0)
        batch = agg.poll(now=5.1)
        assert batch == [_event("a.csv")]

    def test_released_only_once(self):
        agg = DebounceAggregator(wait_seconds=1)
        agg.add(_event("a.csv"), now=0.0)
        assert agg.poll(now=2.0) is not None
        assert agg.poll(now=3.0) is None


class TestBursts:
    def test_burst_yields_single_batch(self):
        agg = DebounceAggregator(wait_seconds=2)
        released = []
        for i, t in enumerate([0.0, 1.5, 3.0, 4.5, 6.0]):
            batch = agg.poll(now=t)
            if batch:
                released.append(batch)
            agg.add(_event(f"f{i}.csv"), now=t)
        released.append(agg.poll(now=8.5))

        assert len(released) == 1
        assert [e.path.name for e in released[0]] == [f"f{i}.csv" for i in range(5)]

    def test_gap_splits_batches(self):
        agg = DebounceAggregator(wait_seconds=2)
        agg.add(_event("a.csv"), now=0.0)
        agg.add(_event("b.csv"), now=1.0)
        first = agg.poll(now=3.5)
        agg.add(_event("c.csv"), now=10.0)
        assert agg.poll(now=11.0) is None
        second = agg.poll(now=12.5)

        assert [e.path.name for e in first] == ["a.csv", "b.csv"]
        assert [e.path.name for e in second] == ["c.csv"]

    def test_new_event_resets_clock(self):
        agg = DebounceAggregator(wait_seconds=2)
        agg.add(_event("a.csv"), now=0.0)
        agg.add(_event("a.csv", ChangeKind.MODIFIED), now=1.9)
        assert agg.poll(now=3.0) is None
        assert len(agg.poll(now=4.0)) == 2
