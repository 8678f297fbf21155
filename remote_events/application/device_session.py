"""DeviceSession: one live connection to the remote device.

A session owns every register and event obtained while a connection is up.
When the connection drops the session is invalidated: every object it
created becomes unusable and pending remote operations complete with
ConnectionLostError.

All remote operations are issued through ``request``/``read_raw`` so they
share one timeout policy and observe connection loss.
"""

import asyncio
import itertools
import logging
import time
import weakref
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..config_loader import EventCoreSettings
from ..const import FILTER_MODULE_ID, FILTER_NOTIFY_REGISTER, MAX_FILTER_SLOTS
from ..domain.entities import DataRegister, Event, Register
from ..domain.exceptions import (
    ConnectionLostError,
    TransportError,
    as_transport_error,
)
from ..domain.interfaces import IEntryDecoder, IEventTransport, StreamCallback
from ..domain.value_objects import (
    CommandKind,
    OperationResult,
    RegisterAddress,
    RegisterCommand,
)
from ..infrastructure.decoding import StructEntryDecoder
from ..infrastructure.decorators import deliver_result, require_valid_session
from .services.command_programmer import CommandProgrammer
from .services.event_graph import EventGraph
from .services.identifier_registry import IdentifierRegistry
from .services.log_transfer_service import LogTransferService
from .services.notification_manager import NotificationManager

_LOGGER = logging.getLogger(__name__)

# Millisecond clock used to timestamp firings
Clock = Callable[[], float]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class DeviceSession:
    """Connection-scoped owner of registers, events and services.

    Root events are memoised per address; derived events are created by
    the event graph and owned by the caller.

    Attributes:
        session_id: Process-unique id of this session
        graph: Filter derivation service
        notifications: Notification subscription manager
        programmer: Command programming service
        logs: Log transfer service
        registry: Identifier registry (shared across sessions of a device)

    Example:
        >>> session = DeviceSession(transport)
        >>> switch = session.root_event(RegisterAddress(0x01, 0x01), "switch")
        >>> result = await switch.start_notifications(on_press)
        >>> session.invalidate()
        >>> switch.is_valid
        False
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        transport: IEventTransport,
        decoder: Optional[IEntryDecoder] = None,
        settings: Optional[EventCoreSettings] = None,
        clock: Optional[Clock] = None,
        registry: Optional[IdentifierRegistry] = None,
    ):
        """Initialize session.

        Args:
            transport: Connected transport
            decoder: Payload decoder (defaults to StructEntryDecoder)
            settings: Core settings (defaults to EventCoreSettings())
            clock: Millisecond clock for firing timestamps
            registry: Identifier registry to attach to
        """
        self._session_id = next(DeviceSession._ids)
        self._transport = transport
        self._settings = settings or EventCoreSettings()
        self._decoder = decoder or StructEntryDecoder(self._settings.decoder_formats)
        self._clock = clock or _monotonic_ms
        self._valid = True
        self._lost = asyncio.Event()
        self._roots: Dict[RegisterAddress, Event] = {}
        self._data: Dict[RegisterAddress, DataRegister] = {}
        self._free_slots: Set[int] = set(range(MAX_FILTER_SLOTS))
        self._installs: "weakref.WeakKeyDictionary[Event, asyncio.Task]" = (
            weakref.WeakKeyDictionary()
        )
        self._pending: Set[asyncio.Task] = set()

        self.graph = EventGraph(self)
        self.notifications = NotificationManager(self)
        self.programmer = CommandProgrammer(self)
        self.logs = LogTransferService(self)
        self.registry = registry if registry is not None else IdentifierRegistry()
        self.registry.attach(self)

        _LOGGER.debug("Session %d opened", self._session_id)

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def is_valid(self) -> bool:
        return self._valid

    @property
    def settings(self) -> EventCoreSettings:
        return self._settings

    @property
    def decoder(self) -> IEntryDecoder:
        return self._decoder

    def now_ms(self) -> float:
        """Current timestamp for firings, in milliseconds."""
        return self._clock()

    # ------------------------------------------------------------------
    # Register factories
    # ------------------------------------------------------------------

    def root_event(self, address: RegisterAddress, kind: str = "") -> Event:
        """Root event at ``address``; repeated calls return the same instance."""
        event = self._roots.get(address)
        if event is None:
            event = Event(self, address, kind)
            self._roots[address] = event
        return event

    def data_register(self, address: RegisterAddress, kind: str = "") -> DataRegister:
        """Data register at ``address``; memoised like root events."""
        register = self._data.get(address)
        if register is None:
            register = DataRegister(self, address, kind)
            self._data[address] = register
        return register

    @property
    def free_filter_slots(self) -> int:
        return len(self._free_slots)

    def _acquire_filter_slot(self) -> int:
        """Lowest free device filter slot.

        Raises:
            TransportError: If every slot holds a live installed filter
        """
        if not self._free_slots:
            raise TransportError(
                f"No free filter slots (device supports {MAX_FILTER_SLOTS})"
            )
        slot = min(self._free_slots)
        self._free_slots.discard(slot)
        return slot

    def _release_filter_slot(self, slot: int) -> None:
        self._free_slots.add(slot)
        _LOGGER.debug("Filter slot %d released in session %d", slot, self._session_id)

    # ------------------------------------------------------------------
    # Remote plumbing
    # ------------------------------------------------------------------

    def schedule(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        """Run ``coro`` as a tracked task on the running loop."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def request(self, address: RegisterAddress, command: RegisterCommand) -> Any:
        """Send ``command`` to ``address`` and return the device's reply.

        Raises:
            ConnectionLostError: If the session is or becomes invalid
            TransportError: On communication failure or timeout
        """
        if not self._valid:
            raise ConnectionLostError(f"Session {self._session_id} is closed")
        _LOGGER.debug("Request %s -> %s", command, address.to_hex())
        return await self._guard(self._transport.send_register_command(address, command))

    async def read_raw(self, address: RegisterAddress) -> Any:
        """Read the raw payload of ``address``."""
        if not self._valid:
            raise ConnectionLostError(f"Session {self._session_id} is closed")
        _LOGGER.debug("Read %s", address.to_hex())
        return await self._guard(self._transport.read_register(address))

    async def subscribe(self, address: RegisterAddress, callback: StreamCallback) -> None:
        if not self._valid:
            raise ConnectionLostError(f"Session {self._session_id} is closed")
        await self._guard(self._transport.subscribe(address, callback))

    async def unsubscribe(self, address: RegisterAddress) -> None:
        if not self._valid:
            return
        await self._guard(self._transport.unsubscribe(address))

    async def _guard(self, awaitable: Awaitable) -> Any:
        """Await a transport call, bounded by the timeout and connection loss."""
        call = asyncio.ensure_future(awaitable)
        lost = asyncio.ensure_future(self._lost.wait())
        try:
            done, _ = await asyncio.wait(
                {call, lost},
                timeout=self._settings.command_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            lost.cancel()

        if call in done:
            return call.result()

        call.cancel()
        if lost in done:
            raise ConnectionLostError(
                f"Connection lost while session {self._session_id} was waiting"
            )
        raise TransportError(
            f"No reply within {self._settings.command_timeout:.1f}s"
        )

    # ------------------------------------------------------------------
    # Live register operations
    # ------------------------------------------------------------------

    @require_valid_session(register_param="register")
    def read_register(self, register: Register) -> asyncio.Task:
        """Read ``register``; the task resolves to an OperationResult."""
        return self.schedule(self._read(register), name=f"read {register}")

    @deliver_result("Register read")
    async def _read(self, register: Register) -> OperationResult:
        if isinstance(register, Event):
            await self.ensure_installed(register)
        raw = await self.read_raw(register.address)
        value = self._decoder.decode(register.kind, raw)
        register._cache_value(value)
        return OperationResult.ok(value)

    @require_valid_session(register_param="register")
    def write_register(self, register: Register, value: Any) -> asyncio.Task:
        """Write ``value`` to ``register``."""
        command = RegisterCommand(CommandKind.WRITE, {"value": value})
        return self.schedule(self._write(register, command), name=f"write {register}")

    @deliver_result("Register write")
    async def _write(self, register: Register, command: RegisterCommand) -> OperationResult:
        if isinstance(register, Event):
            await self.ensure_installed(register)
        await self.request(register.address, command)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Inbound firings
    # ------------------------------------------------------------------

    def stream_callback(self, root: Event) -> StreamCallback:
        """Transport callback feeding raw payloads of ``root`` into the graph."""

        def on_payload(raw: Any, error: Optional[Exception]) -> None:
            if not self._valid:
                return
            timestamp = self.now_ms()
            if error is not None:
                root.fire(None, as_transport_error(error), timestamp)
                return
            try:
                value = self._decoder.decode(root.kind, raw)
            except ValueError as err:
                _LOGGER.warning("Dropping undecodable payload of %s: %s", root, err)
                return
            root.fire(value, None, timestamp)

        return on_payload

    def schedule_coupled_read(
        self, event: Event, address: RegisterAddress, timestamp_ms: float
    ) -> None:
        """Read ``address`` and fire ``event`` with the fresh value."""
        if not self._valid:
            return
        self.schedule(
            self._coupled_read(event, address, timestamp_ms),
            name=f"coupled read {address.to_hex()}",
        )

    async def _coupled_read(
        self, event: Event, address: RegisterAddress, timestamp_ms: float
    ) -> None:
        try:
            raw = await self.read_raw(address)
            value = self._decoder.decode(event.kind, raw)
        except (TransportError, ValueError) as err:
            if self._valid:
                event.fire(None, as_transport_error(err), timestamp_ms)
            return
        event.fire(value, None, timestamp_ms)

    # ------------------------------------------------------------------
    # Filter installation
    # ------------------------------------------------------------------

    async def ensure_installed(self, event: Event) -> None:
        """Create ``event``'s filter chain on the device, sources first.

        Each derived event takes the lowest free device filter slot and
        gives it back when it is garbage collected. Concurrent callers
        share one installation; a failed installation is retried by the
        next caller.
        """
        if event.is_installed:
            return
        task = self._installs.get(event)
        if task is None:
            task = asyncio.ensure_future(self._install(event))
            self._installs[event] = task
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and not event.is_installed:
                self._installs.pop(event, None)

    async def _install(self, event: Event) -> None:
        await self.ensure_installed(event.source)
        slot = self._acquire_filter_slot()
        address = RegisterAddress(FILTER_MODULE_ID, FILTER_NOTIFY_REGISTER, slot)
        command = RegisterCommand(
            CommandKind.INSTALL_FILTER,
            {"source": event.source.address, "filter": event.filter_spec},
        )
        try:
            await self.request(address, command)
        except BaseException:
            self._release_filter_slot(slot)
            raise
        event._mark_installed(address)
        # the slot is reused once the event is unreachable
        weakref.finalize(event, self._release_filter_slot, slot)
        _LOGGER.debug("Installed %s on %s", event.filter_spec, address.to_hex())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def invalidate(self) -> None:
        """Mark the session dead. Idempotent.

        Pending operations complete with ConnectionLostError; their
        completion callbacks still run.
        """
        if not self._valid:
            return
        self._valid = False
        self._lost.set()
        self.notifications.clear()
        self.registry.detach(self)
        _LOGGER.info(
            "Session %d invalidated (%d operations pending)",
            self._session_id,
            len(self._pending),
        )

    def __str__(self) -> str:
        state = "valid" if self._valid else "invalidated"
        return f"DeviceSession({self._session_id}, {state})"
