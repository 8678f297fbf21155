"""Filter evaluation.

One evaluation function per filter kind. The same state objects are used
whatever sink is downstream, so a derived event computes its value the
same way for live notifications as the device does for logging and
programmed commands.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from ..value_objects import FilterKind, FilterSpec, RegisterAddress

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterOutcome:
    """Result of feeding one source firing into a filter.

    Attributes:
        fire: Whether the derived event fires now with ``value``
        value: Value carried by the firing
        read_address: Set when the firing must first read this register;
            the derived event fires later with the value read.
    """

    fire: bool
    value: Any = None
    read_address: Optional[RegisterAddress] = None

    @classmethod
    def emit(cls, value: Any) -> "FilterOutcome":
        """Fire immediately with ``value``."""
        return cls(fire=True, value=value)

    @classmethod
    def suppress(cls) -> "FilterOutcome":
        """Do not fire."""
        return cls(fire=False)

    @classmethod
    def read(cls, address: RegisterAddress) -> "FilterOutcome":
        """Fire with the value read from ``address``."""
        return cls(fire=False, read_address=address)


class FilterState(ABC):
    """Mutable state of one derived event's filter."""

    def __init__(self, spec: FilterSpec):
        self._spec = spec

    @property
    def spec(self) -> FilterSpec:
        """Filter definition."""
        return self._spec

    @abstractmethod
    def evaluate(self, value: Any, timestamp_ms: float) -> FilterOutcome:
        """Feed one source firing.

        Args:
            value: Decoded source payload
            timestamp_ms: Arrival time in milliseconds (monotonic)
        """

    def reset(self) -> None:
        """Return to the freshly created state."""


class AccumulateState(FilterState):
    """Running sum of source outputs; fires on every source firing."""

    def __init__(self, spec: FilterSpec):
        super().__init__(spec)
        self._total: Any = 0

    @property
    def total(self) -> Any:
        return self._total

    def evaluate(self, value: Any, timestamp_ms: float) -> FilterOutcome:
        self._total = self._total + value
        return FilterOutcome.emit(self._total)

    def reset(self) -> None:
        self._total = 0


class PeriodicSampleState(FilterState):
    """Passes at most one firing per period.

    Leading edge: a firing passes when nothing has been emitted yet or at
    least ``period_ms`` elapsed since the last emitted firing. It carries
    its own value, which is the most recent value seen. Firings inside the
    window are dropped.
    """

    def __init__(self, spec: FilterSpec):
        super().__init__(spec)
        self._last_emit_ms: Optional[float] = None

    def evaluate(self, value: Any, timestamp_ms: float) -> FilterOutcome:
        if (
            self._last_emit_ms is not None
            and timestamp_ms - self._last_emit_ms < self._spec.period_ms
        ):
            return FilterOutcome.suppress()
        self._last_emit_ms = timestamp_ms
        return FilterOutcome.emit(value)

    def reset(self) -> None:
        self._last_emit_ms = None


class ReadCoupledState(FilterState):
    """Replaces every source firing with a fresh read of the data register."""

    def evaluate(self, value: Any, timestamp_ms: float) -> FilterOutcome:
        return FilterOutcome.read(self._spec.data_address)


_STATE_TYPES: Dict[FilterKind, Type[FilterState]] = {
    FilterKind.ACCUMULATE: AccumulateState,
    FilterKind.PERIODIC_SAMPLE: PeriodicSampleState,
    FilterKind.READ_COUPLED: ReadCoupledState,
}


def create_filter_state(spec: FilterSpec) -> FilterState:
    """Create the evaluation state for ``spec``.

    Example:
        >>> state = create_filter_state(FilterSpec(FilterKind.ACCUMULATE))
        >>> state.evaluate(2, 0).value, state.evaluate(3, 10).value
        (2, 5)
    """
    state = _STATE_TYPES[spec.kind](spec)
    _LOGGER.debug("Created %s state for %s", type(state).__name__, spec)
    return state
