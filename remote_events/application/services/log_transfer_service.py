"""LogTransferService: remote logging control and log download.

Download protocol:
    1. LOG_ENTRY_COUNT -> number of buffered entries N
    2. LOG_READ(start, count) in chunks of ``log_chunk_size`` until N
       entries have arrived; an empty chunk before that is an error
    3. Optional LOG_STOP (stop_after), then optional LOG_CLEAR (clear_after)
    4. on_progress(1.0), then on_complete(entries, None)

Any failure during steps 1-2 completes the download with (``[]``, error)
and leaves logging untouched. A derived event whose filter was never
installed skips steps 1-3 and completes with ``[]``.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Tuple

from ...domain.entities import Event
from ...domain.exceptions import (
    DownloadInProgressError,
    InvalidArgumentError,
    TransportError,
    as_transport_error,
)
from ...domain.value_objects import (
    CommandKind,
    OperationResult,
    RegisterCommand,
)
from ...infrastructure.decorators import deliver_result, require_valid_session

if TYPE_CHECKING:
    from ..device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)

CompleteCallback = Callable[[List[Any], Optional[Exception]], None]
ProgressCallback = Callable[[float], None]


class _ProgressReporter:
    """Forwards strictly increasing fractions in [0, 1] to a callback."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self._last: Optional[float] = None

    @property
    def last(self) -> Optional[float]:
        return self._last

    def report(self, fraction: float) -> None:
        fraction = min(max(float(fraction), 0.0), 1.0)
        if self._last is not None and fraction <= self._last:
            return
        self._last = fraction
        if self._callback is None:
            return
        try:
            self._callback(fraction)
        except Exception as err:
            _LOGGER.error("Error in log download progress callback: %s", err)


class LogTransferService:
    """Service for remote logging state and log retrieval.

    The event's ``logging_state`` only ever holds what the device has
    confirmed. Start and stop requests for one event run in call order;
    ``is_logging`` waits for the last of them before answering, and asks
    the device only while the state is unknown. A derived event whose
    filter was never installed cannot be logging and has no log.

    Example:
        >>> await temperature.start_logging()
        >>> temperature.download_log(
        ...     stop_after=True,
        ...     on_complete=lambda entries, err: print(entries),
        ...     on_progress=lambda fraction: print(f"{fraction:.0%}"),
        ... )
    """

    def __init__(self, session: "DeviceSession"):
        self._session = session
        self._downloads: Set[Event] = set()
        self._in_flight: Dict[Event, Tuple[bool, asyncio.Task]] = {}

    def is_downloading(self, event: Event) -> bool:
        return event in self._downloads

    @require_valid_session(register_param="event")
    def start_logging(self, event: Event) -> asyncio.Task:
        """Enable logging of ``event`` on the device. No-op if enabled."""
        return self._change(event, CommandKind.LOG_START, True)

    @require_valid_session(register_param="event")
    def stop_logging(self, event: Event) -> asyncio.Task:
        """Disable logging of ``event``. No-op if disabled."""
        if not event.is_installed and event not in self._in_flight:
            event._set_logging(False)
        return self._change(event, CommandKind.LOG_STOP, False)

    @require_valid_session(register_param="event")
    def is_logging(self, event: Event) -> asyncio.Task:
        """Task resolving to an OperationResult carrying the logging state."""
        pending = self._in_flight.get(event)
        if pending is not None:
            return self._session.schedule(
                self._state_after(event, pending[1]), name=f"log query {event}"
            )
        if event.logging_state is None and not event.is_installed:
            event._set_logging(False)
        if event.logging_state is not None:
            return self._session.schedule(self._confirmed(event.logging_state))
        return self._session.schedule(self._query(event), name=f"log query {event}")

    @require_valid_session(register_param="event")
    def download(
        self,
        event: Event,
        stop_after: bool,
        on_complete: CompleteCallback,
        on_progress: Optional[ProgressCallback] = None,
        clear_after: bool = False,
    ) -> asyncio.Task:
        """Download every buffered log entry of ``event``.

        ``on_progress`` sees strictly increasing fractions and always 1.0
        before a successful ``on_complete``. ``on_complete`` runs exactly
        once, with (entries, None) or ([], error).

        Returns:
            Task resolving to an OperationResult carrying the entries

        Raises:
            InvalidatedSessionError: If ``event``'s session is gone
            DownloadInProgressError: If a download of ``event`` is running
        """
        if not callable(on_complete):
            raise InvalidArgumentError("on_complete must be callable")
        if on_progress is not None and not callable(on_progress):
            raise InvalidArgumentError("on_progress must be callable")
        if event in self._downloads:
            raise DownloadInProgressError(f"Log download of {event} already in progress")

        self._downloads.add(event)
        return self._session.schedule(
            self._download(event, stop_after, clear_after, on_complete, on_progress),
            name=f"log download {event}",
        )

    def _change(self, event: Event, kind: CommandKind, state: bool) -> asyncio.Task:
        pending = self._in_flight.get(event)
        if pending is None and event.logging_state is state:
            return self._session.schedule(self._confirmed(state))
        if pending is not None and pending[0] is state:
            return pending[1]

        previous = pending[1] if pending is not None else None
        task = self._session.schedule(
            self._set_logging(event, kind, state, previous),
            name=f"{kind.value} {event}",
        )
        self._in_flight[event] = (state, task)
        task.add_done_callback(lambda done: self._settle(event, done))
        return task

    def _settle(self, event: Event, task: asyncio.Task) -> None:
        pending = self._in_flight.get(event)
        if pending is not None and pending[1] is task:
            del self._in_flight[event]

    @staticmethod
    async def _confirmed(state: bool) -> OperationResult:
        return OperationResult.ok(state)

    async def _set_logging(
        self,
        event: Event,
        kind: CommandKind,
        state: bool,
        previous: Optional[asyncio.Task],
    ) -> OperationResult:
        if previous is not None:
            await asyncio.wait({previous})
        if not state and not event.is_installed:
            event._set_logging(False)
        if event.logging_state is state:
            return OperationResult.ok(state)
        try:
            if state:
                await self._session.ensure_installed(event)
            await self._session.request(event.address, RegisterCommand(kind))
        except Exception as err:
            error = as_transport_error(err)
            _LOGGER.warning("%s of %s failed: %s", kind.value, event, error)
            return OperationResult.failed(error)

        event._set_logging(state)
        _LOGGER.debug("%s confirmed for %s", kind.value, event)
        return OperationResult.ok(state)

    async def _state_after(self, event: Event, pending: asyncio.Task) -> OperationResult:
        await asyncio.wait({pending})
        if event.logging_state is None and not event.is_installed:
            event._set_logging(False)
        if event.logging_state is not None:
            return OperationResult.ok(event.logging_state)
        return await self._query(event)

    @deliver_result("Logging state query")
    async def _query(self, event: Event) -> OperationResult:
        reply = await self._session.request(
            event.address, RegisterCommand(CommandKind.LOG_QUERY)
        )
        state = bool(reply)
        event._set_logging(state)
        return OperationResult.ok(state)

    async def _download(
        self,
        event: Event,
        stop_after: bool,
        clear_after: bool,
        on_complete: CompleteCallback,
        on_progress: Optional[ProgressCallback],
    ) -> OperationResult:
        progress = _ProgressReporter(on_progress)
        try:
            entries = await self._retrieve(event, progress)
        except asyncio.CancelledError:
            self._downloads.discard(event)
            raise
        except Exception as err:
            error = as_transport_error(err)
            _LOGGER.warning("Log download of %s failed: %s", event, error)
            self._downloads.discard(event)
            self._complete(on_complete, [], error)
            return OperationResult.failed(error)

        if stop_after:
            await self._stop_after_download(event)
        if clear_after and event.is_installed:
            await self._clear_after_download(event)

        progress.report(1.0)
        self._downloads.discard(event)
        _LOGGER.info("Downloaded %d log entries of %s", len(entries), event)
        self._complete(on_complete, entries, None)
        return OperationResult.ok(entries)

    async def _retrieve(self, event: Event, progress: _ProgressReporter) -> List[Any]:
        if not event.is_installed:
            _LOGGER.debug("%s was never installed; its log is empty", event)
            return []
        address = event.address
        total = int(
            await self._session.request(
                address, RegisterCommand(CommandKind.LOG_ENTRY_COUNT)
            )
        )
        _LOGGER.debug("%s has %d buffered log entries", event, total)
        if total <= 0:
            return []

        chunk_size = self._session.settings.log_chunk_size
        decoder = self._session.decoder
        entries: List[Any] = []
        progress.report(0.0)
        while len(entries) < total:
            count = min(chunk_size, total - len(entries))
            chunk = await self._session.request(
                address,
                RegisterCommand(
                    CommandKind.LOG_READ, {"start": len(entries), "count": count}
                ),
            )
            if not chunk:
                raise TransportError(
                    f"Device returned no log entries at offset {len(entries)} of {total}"
                )
            for raw in list(chunk)[:count]:
                entries.append(decoder.decode(event.kind, raw))
            progress.report(len(entries) / total)
        return entries

    async def _stop_after_download(self, event: Event) -> None:
        if not event.is_installed:
            event._set_logging(False)
            return
        try:
            await self._session.request(
                event.address, RegisterCommand(CommandKind.LOG_STOP)
            )
        except Exception as err:
            _LOGGER.warning(
                "Entries of %s retrieved but logging could not be stopped: %s",
                event,
                as_transport_error(err),
            )
            event._set_logging(None)
            return
        event._set_logging(False)

    async def _clear_after_download(self, event: Event) -> None:
        try:
            await self._session.request(
                event.address, RegisterCommand(CommandKind.LOG_CLEAR)
            )
        except Exception as err:
            _LOGGER.warning(
                "Entries of %s retrieved but the log could not be cleared: %s",
                event,
                as_transport_error(err),
            )

    @staticmethod
    def _complete(
        on_complete: CompleteCallback, entries: List[Any], error: Optional[Exception]
    ) -> None:
        try:
            on_complete(entries, error)
        except Exception as err:
            _LOGGER.error("Error in log download completion callback: %s", err)
