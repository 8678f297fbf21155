"""Tests for filter evaluation states."""

import pytest

from remote_events.domain.services import (
    AccumulateState,
    PeriodicSampleState,
    ReadCoupledState,
    create_filter_state,
)
from remote_events.domain.value_objects import FilterKind, FilterSpec, RegisterAddress


def sample_state(period_ms: int) -> PeriodicSampleState:
    return create_filter_state(FilterSpec(FilterKind.PERIODIC_SAMPLE, period_ms=period_ms))


class TestAccumulate:
    """Running sum, fires on every source firing."""

    def test_fires_with_running_total(self):
        state = create_filter_state(FilterSpec(FilterKind.ACCUMULATE))
        assert isinstance(state, AccumulateState)

        outcomes = [state.evaluate(value, t) for t, value in enumerate([1, 2, 3])]

        assert [o.fire for o in outcomes] == [True, True, True]
        assert [o.value for o in outcomes] == [1, 3, 6]
        assert state.total == 6

    def test_reset(self):
        state = create_filter_state(FilterSpec(FilterKind.ACCUMULATE))
        state.evaluate(5, 0)
        state.reset()
        assert state.evaluate(1, 1).value == 1

    def test_non_numeric_rejected(self):
        state = create_filter_state(FilterSpec(FilterKind.ACCUMULATE))
        with pytest.raises(TypeError):
            state.evaluate("a", 0)


class TestPeriodicSample:
    """Leading-edge sampling: at most one firing per period."""

    def test_firings_within_window_are_dropped(self):
        state = sample_state(100)
        times = [0, 30, 60, 90, 150, 200]

        emitted = [
            (t, outcome.value)
            for t in times
            for outcome in [state.evaluate(f"v{t}", t)]
            if outcome.fire
        ]

        assert emitted == [(0, "v0"), (150, "v150")]

    def test_window_anchored_on_last_emission(self):
        state = sample_state(100)
        assert state.evaluate(1, 0).fire
        assert not state.evaluate(2, 99).fire
        assert state.evaluate(3, 100).fire
        assert not state.evaluate(4, 150).fire
        assert state.evaluate(5, 200).fire

    def test_emitted_firings_are_period_apart(self):
        state = sample_state(100)
        times = [0, 10, 95, 101, 180, 201, 250, 302, 399, 405]
        fired = [t for t in times if state.evaluate(t, t).fire]

        assert fired[0] == 0
        assert all(b - a >= 100 for a, b in zip(fired, fired[1:]))

    def test_reset_starts_new_window(self):
        state = sample_state(100)
        state.evaluate(1, 0)
        state.reset()
        assert state.evaluate(2, 10).fire


class TestReadCoupled:
    """Every firing becomes a read of the data register."""

    def test_requests_read(self):
        data = RegisterAddress(0x04, 0x01)
        state = create_filter_state(
            FilterSpec(FilterKind.READ_COUPLED, data_address=data, data_kind="temperature")
        )
        assert isinstance(state, ReadCoupledState)

        outcome = state.evaluate(1, 0)

        assert not outcome.fire
        assert outcome.read_address == data
