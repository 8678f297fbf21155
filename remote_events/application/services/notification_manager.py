"""NotificationManager service.

Keeps at most one handler per event and the device streams feeding them.
One stream exists per root event; derived events are evaluated on the
host from their root's firings, so subscribing to any event of a chain
opens (or reuses) the stream of the chain's root.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Optional, Set

from ...domain.entities import Event, EventHandler
from ...domain.exceptions import InvalidArgumentError, as_transport_error
from ...domain.value_objects import OperationResult, RegisterAddress
from ...infrastructure.decorators import require_valid_session

if TYPE_CHECKING:
    from ..device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class NotificationManager:
    """Service managing notification handlers and device streams.

    Responsibilities:
    - Replace an event's handler, releasing the previous one
    - Open a root's stream on first subscription within its chain
    - Close the stream when the last subscriber of the chain leaves
    - Report stream failures to the affected handlers

    Example:
        >>> task = session.notifications.start(switch, on_press)
        >>> (await task).success
        True
        >>> session.notifications.stop(switch)
    """

    def __init__(self, session: "DeviceSession"):
        self._session = session
        self._subscribed: Set[Event] = set()
        self._streams: Dict[RegisterAddress, asyncio.Task] = {}
        self._closing: Dict[RegisterAddress, asyncio.Task] = {}

    @property
    def subscribed(self) -> Set[Event]:
        """Events with an active handler."""
        return set(self._subscribed)

    def is_streaming(self, root: Event) -> bool:
        return root.address in self._streams

    @require_valid_session(register_param="event")
    def start(self, event: Event, handler: EventHandler) -> asyncio.Task:
        """Make ``handler`` the sole handler of ``event``.

        Returns:
            Task resolving to an OperationResult once the stream is up

        Raises:
            InvalidatedSessionError: If ``event``'s session is gone
            InvalidArgumentError: If ``handler`` is not callable
        """
        if not callable(handler):
            raise InvalidArgumentError(f"Notification handler must be callable, got {handler!r}")

        previous = event._set_handler(handler)
        self._subscribed.add(event)
        if previous is not None:
            _LOGGER.debug("Replaced notification handler of %s", event)

        root = event.root
        task = self._streams.get(root.address)
        if task is None:
            task = self._session.schedule(
                self._open_stream(root, self._closing.get(root.address)),
                name=f"stream {root.address.to_hex()}",
            )
            self._streams[root.address] = task
        return task

    @require_valid_session(register_param="event")
    def stop(self, event: Event) -> Optional[asyncio.Task]:
        """Release ``event``'s handler. No-op when none is set.

        Returns:
            Task closing the root's stream when this was its last
            subscriber, otherwise None
        """
        if event._set_handler(None) is None:
            return None
        self._subscribed.discard(event)

        root = event.root
        if any(other.root is root for other in self._subscribed):
            return None

        opening = self._streams.pop(root.address, None)
        if opening is None:
            return None
        closing = self._session.schedule(
            self._close_stream(root, opening), name=f"unstream {root.address.to_hex()}"
        )
        self._closing[root.address] = closing
        closing.add_done_callback(lambda done: self._forget_close(root.address, done))
        return closing

    def clear(self) -> None:
        """Release every handler without touching the device."""
        for event in self._subscribed:
            event._set_handler(None)
        self._subscribed.clear()
        self._streams.clear()
        self._closing.clear()

    def _forget_close(self, address: RegisterAddress, task: asyncio.Task) -> None:
        if self._closing.get(address) is task:
            del self._closing[address]

    async def _open_stream(
        self, root: Event, closing: Optional[asyncio.Task]
    ) -> OperationResult:
        # a stream being closed is fully torn down before it is opened again
        if closing is not None:
            await asyncio.wait({closing})
        try:
            await self._session.subscribe(
                root.address, self._session.stream_callback(root)
            )
        except Exception as err:
            error = as_transport_error(err)
            _LOGGER.warning("Could not open stream of %s: %s", root, error)
            if self._streams.get(root.address) is asyncio.current_task():
                del self._streams[root.address]
            for event in list(self._subscribed):
                if event.root is root and event.handler is not None:
                    self._notify_error(event, error)
            return OperationResult.failed(error)

        _LOGGER.debug("Streaming %s", root)
        return OperationResult.ok()

    async def _close_stream(self, root: Event, opening: asyncio.Task) -> OperationResult:
        result = await opening
        if not result.success:
            return OperationResult.ok()
        try:
            await self._session.unsubscribe(root.address)
        except Exception as err:
            error = as_transport_error(err)
            _LOGGER.warning("Could not close stream of %s: %s", root, error)
            return OperationResult.failed(error)
        _LOGGER.debug("Stopped streaming %s", root)
        return OperationResult.ok()

    @staticmethod
    def _notify_error(event: Event, error: Exception) -> None:
        try:
            event.handler(None, error)
        except Exception as err:
            _LOGGER.error("Error in notification handler of %s: %s", event, err)
