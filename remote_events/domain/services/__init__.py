"""Domain services: pure logic without infrastructure dependencies."""

from .filter_evaluator import (
    AccumulateState,
    FilterOutcome,
    FilterState,
    PeriodicSampleState,
    ReadCoupledState,
    create_filter_state,
)

__all__ = [
    "AccumulateState",
    "FilterOutcome",
    "FilterState",
    "PeriodicSampleState",
    "ReadCoupledState",
    "create_filter_state",
]
