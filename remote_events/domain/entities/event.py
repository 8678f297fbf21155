"""Event entity.

An Event is a register that additionally models occurrence. Root events
map to physical occurrences on the device and are cached per session.
Derived events are produced by applying a filter to a source event and are
created fresh on every derivation call; the caller owns them. A derived
event has no device address until its filter is installed in a device
filter slot; its identity is the object itself.

Firing is push based. A firing at a node first reaches the node's own
notification handler, then every downstream filter. Logging and programmed
commands are sinks evaluated on the device itself; the host only keeps
their configuration.
"""

import asyncio
import logging
import weakref
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from ..services import FilterState
from ..value_objects import EventRecipe, FilterSpec, Instruction, RegisterAddress
from .register import DataRegister, Register

if TYPE_CHECKING:
    from ...application.device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)

# Notification handler: (payload, error). Exactly one of them is set.
EventHandler = Callable[[Any, Optional[Exception]], None]


class Event(Register):
    """Domain entity representing a root or derived event.

    Attributes:
        identifier: Identifier the event is bound under, or None
        source: Upstream event, None for root events
        filter_spec: Filter of a derived event, None for root events
        handler: Active notification handler, or None
        logging_state: Last confirmed logging state (None = unknown)
        programmed_commands: Instructions bound to this event's trigger

    Example:
        >>> switch = session.root_event(RegisterAddress(0x01, 0x01), "switch")
        >>> presses = switch.accumulate(identifier="press-count")
        >>> presses.start_notifications(lambda total, err: print(total))
    """

    def __init__(
        self,
        session: "DeviceSession",
        address: Optional[RegisterAddress],
        kind: str = "",
        source: Optional["Event"] = None,
        filter_state: Optional[FilterState] = None,
    ):
        super().__init__(session, address, kind)
        if (source is None) != (filter_state is None):
            raise ValueError("Derived events need both a source and a filter")
        if (source is None) == (address is None):
            raise ValueError("Root events need an address, derived events get one on install")
        self._source = source
        self._filter_state = filter_state
        self._children: "weakref.WeakSet[Event]" = weakref.WeakSet()
        self._handler: Optional[EventHandler] = None
        self._identifier: Optional[str] = None
        self._logging: Optional[bool] = None
        self._commands: Tuple[Instruction, ...] = ()
        self._installed = source is None
        if source is not None:
            source._children.add(self)

    # ------------------------------------------------------------------
    # Graph structure
    # ------------------------------------------------------------------

    @property
    def is_root(self) -> bool:
        """Whether this event is a physical (root) event."""
        return self._source is None

    @property
    def source(self) -> Optional["Event"]:
        return self._source

    @property
    def root(self) -> "Event":
        """Root event of this event's chain."""
        event = self
        while event._source is not None:
            event = event._source
        return event

    @property
    def filter_spec(self) -> Optional[FilterSpec]:
        return self._filter_state.spec if self._filter_state else None

    @property
    def downstream(self) -> List["Event"]:
        """Live derived events fed by this event."""
        return list(self._children)

    @property
    def identifier(self) -> Optional[str]:
        return self._identifier

    @property
    def recipe(self) -> EventRecipe:
        """Construction recipe of this event, built from the live chain."""
        if self._source is None:
            return EventRecipe(
                kind=self.kind, address=self.address, identifier=self._identifier
            )
        return EventRecipe.derived(
            self.filter_spec, self._source.recipe, identifier=self._identifier
        )

    # ------------------------------------------------------------------
    # Sink state
    # ------------------------------------------------------------------

    @property
    def handler(self) -> Optional[EventHandler]:
        return self._handler

    @property
    def is_notifying(self) -> bool:
        return self._handler is not None

    @property
    def logging_state(self) -> Optional[bool]:
        return self._logging

    @property
    def programmed_commands(self) -> Tuple[Instruction, ...]:
        return self._commands

    @property
    def is_installed(self) -> bool:
        """Whether the filter chain exists on the device."""
        return self._installed

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def start_notifications(self, handler: EventHandler) -> asyncio.Task:
        """Deliver every firing of this event to ``handler``.

        Replaces any previous handler. Returns without waiting for the
        device; the task resolves once the stream is established.
        """
        return self._session.notifications.start(self, handler)

    def stop_notifications(self) -> Optional[asyncio.Task]:
        """Release the handler. No-op when none is set."""
        return self._session.notifications.stop(self)

    def program_commands(self, block: Callable) -> asyncio.Task:
        """Capture the calls ``block`` makes on its recorder and bind them
        to this event's trigger on the device.

        The block runs exactly once, synchronously, during this call.
        """
        return self._session.programmer.program(self, block)

    def erase_commands(self) -> asyncio.Task:
        """Remove every command bound to this event's trigger."""
        return self._session.programmer.erase(self)

    def start_logging(self) -> asyncio.Task:
        return self._session.logs.start_logging(self)

    def stop_logging(self) -> asyncio.Task:
        return self._session.logs.stop_logging(self)

    def is_logging(self) -> asyncio.Task:
        """Task resolving to an OperationResult whose value is the state."""
        return self._session.logs.is_logging(self)

    def download_log(
        self,
        stop_after: bool,
        on_complete: Callable[[List[Any], Optional[Exception]], None],
        on_progress: Optional[Callable[[float], None]] = None,
        clear_after: bool = False,
    ) -> asyncio.Task:
        """Download every buffered log entry of this event.

        See LogTransferService.download for the callback contract.
        """
        return self._session.logs.download(
            self, stop_after, on_complete, on_progress, clear_after=clear_after
        )

    def accumulate(self, identifier: Optional[str] = None) -> "Event":
        """New event carrying the running sum of this event's output."""
        return self._session.graph.derive_accumulate(self, identifier=identifier)

    def periodic_sample(
        self, period_ms: int, identifier: Optional[str] = None
    ) -> "Event":
        """New event firing at most once every ``period_ms``."""
        return self._session.graph.derive_periodic_sample(
            self, period_ms, identifier=identifier
        )

    def read_on_event(
        self, data: DataRegister, identifier: Optional[str] = None
    ) -> "Event":
        """New event firing with a fresh read of ``data`` on every firing."""
        return self._session.graph.derive_read_coupled(
            self, data, identifier=identifier
        )

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def fire(self, value: Any, error: Optional[Exception], timestamp_ms: float) -> None:
        """Apply this node's sinks, then evaluate downstream filters.

        Siblings are independent; no ordering among them is implied.
        """
        handler = self._handler
        if handler is not None:
            try:
                handler(None if error else value, error)
            except Exception as err:
                _LOGGER.error("Error in notification handler of %s: %s", self, err)

        for child in list(self._children):
            child._on_source_fired(value, error, timestamp_ms)

    def _on_source_fired(
        self, value: Any, error: Optional[Exception], timestamp_ms: float
    ) -> None:
        if error is not None:
            self.fire(None, error, timestamp_ms)
            return

        try:
            outcome = self._filter_state.evaluate(value, timestamp_ms)
        except (TypeError, ValueError) as err:
            _LOGGER.error("Filter %s of %s rejected %r: %s", self.filter_spec, self, value, err)
            return

        if outcome.read_address is not None:
            self._session.schedule_coupled_read(self, outcome.read_address, timestamp_ms)
        elif outcome.fire:
            self.fire(outcome.value, None, timestamp_ms)

    # ------------------------------------------------------------------
    # State mutators used by the application services
    # ------------------------------------------------------------------

    def _set_handler(self, handler: Optional[EventHandler]) -> Optional[EventHandler]:
        previous, self._handler = self._handler, handler
        return previous

    def _set_logging(self, state: Optional[bool]) -> None:
        self._logging = state

    def _set_commands(self, instructions: Tuple[Instruction, ...]) -> None:
        self._commands = tuple(instructions)

    def _bind_identifier(self, identifier: Optional[str]) -> None:
        self._identifier = identifier

    def _mark_installed(self, address: Optional[RegisterAddress] = None) -> None:
        if address is not None:
            self._address = address
        self._installed = True

    def __eq__(self, other: object) -> bool:
        if self._source is None:
            return super().__eq__(other)
        return self is other

    def __hash__(self) -> int:
        if self._source is None:
            return super().__hash__()
        return id(self)

    def __str__(self) -> str:
        """String representation for logging."""
        if self._address is not None and not self._identifier:
            return super().__str__()
        if self._address is None:
            where = f"{self.filter_spec} of {self._source}"
        else:
            where = self._address.to_hex()
        label = f" '{self._identifier}'" if self._identifier else ""
        return f"Event({where}{label})"
