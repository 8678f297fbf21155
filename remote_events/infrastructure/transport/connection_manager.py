"""Connection manager for the transport lifecycle.

Owns the decision of whether a connect attempt may be made right now:
consecutive failures grow an exponential backoff, and after too many of
them attempts are refused until a cool-down has passed. Unexpected link
loss is reported to listeners the moment the transport notices it.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Set

from ...domain.interfaces import IEventTransport
from ..decorators import handle_transport_errors
from ..state_machines import (
    ConnectionEvent,
    ConnectionState,
    ConnectionStateMachine,
)

_LOGGER = logging.getLogger(__name__)

# Event that starts an attempt from each state that allows one
_ATTEMPT_EVENTS = {
    ConnectionState.DISCONNECTED: ConnectionEvent.CONNECT,
    ConnectionState.FAILED: ConnectionEvent.CONNECT,
    ConnectionState.BACKOFF: ConnectionEvent.BACKOFF_EXPIRED,
    ConnectionState.RECONNECTING: ConnectionEvent.RETRY,
}


class ConnectionManager:
    """Connects a transport with backoff and reports link loss.

    Listeners added with ``add_connection_lost_listener`` run synchronously
    inside the transport's disconnect callback, before any bookkeeping, so
    the session built on the link is invalidated before another firing can
    be processed. Requested disconnects are not reported.

    Example:
        >>> manager = ConnectionManager(BleakEventTransport(codec))
        >>> manager.add_connection_lost_listener(session.invalidate)
        >>> await manager.ensure_connected("AA:BB:CC:DD:EE:FF")
        True
    """

    MAX_CONSECUTIVE_FAILURES = 5
    INITIAL_BACKOFF = 1.0  # seconds
    MAX_BACKOFF = 300.0  # also the cool-down after MAX_CONSECUTIVE_FAILURES

    def __init__(self, transport: IEventTransport):
        self._transport = transport
        self._address: Optional[str] = None
        self._failures = 0
        self._backoff = self.INITIAL_BACKOFF
        self._last_attempt = 0.0
        self._closing = False
        self._lost_listeners: List[Callable[[], None]] = []
        self._state_machine = ConnectionStateMachine()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def transport(self) -> IEventTransport:
        return self._transport

    @property
    def connection_state(self) -> str:
        """Lower-case name of the current connection state."""
        return self._state_machine.state.name.lower()

    @property
    def is_connected(self) -> bool:
        return self._state_machine.is_connected

    def add_connection_lost_listener(self, listener: Callable[[], None]) -> None:
        """Run ``listener()`` whenever the link drops unexpectedly."""
        self._lost_listeners.append(listener)

    @handle_transport_errors("Ensure connection", reraise=False, default_return=False)
    async def ensure_connected(self, address: str) -> bool:
        """Connect to ``address`` unless already connected.

        Waits out the current backoff first. Returns False without
        touching the transport while the failure limit is in force.

        Returns:
            True if the transport is connected afterwards
        """
        self._address = address
        if self._state_machine.is_connected and self._transport.is_connected:
            return True

        if not self._state_machine.can_connect:
            _LOGGER.warning(
                "Connect to %s refused in state %s",
                address,
                self._state_machine.state.name,
            )
            return False

        if not self._failure_limit_expired():
            return False
        await self._wait_for_backoff()

        self._last_attempt = time.time()
        self._state_machine.transition(_ATTEMPT_EVENTS[self._state_machine.state])
        _LOGGER.debug("Connecting to %s (attempt after %d failures)", address, self._failures)

        try:
            connected = await self._transport.connect(
                address, disconnected_callback=self._handle_disconnect
            )
        except Exception:
            self._record_failure()
            self._state_machine.transition(ConnectionEvent.CONNECT_FAILED)
            raise

        if not connected:
            self._record_failure()
            self._state_machine.transition(ConnectionEvent.CONNECT_FAILED)
            _LOGGER.warning("Connecting to %s failed (%d in a row)", address, self._failures)
            return False

        self._failures = 0
        self._backoff = self.INITIAL_BACKOFF
        self._state_machine.transition(ConnectionEvent.CONNECT_SUCCESS)
        _LOGGER.info("Connected to %s", address)
        return True

    async def disconnect(self) -> None:
        """Close the link on request. Not counted as a failure."""
        self._closing = True
        try:
            await self._transport.disconnect()
        finally:
            self._closing = False
        if not self._state_machine.transition(ConnectionEvent.DISCONNECT):
            self._state_machine.force_state(ConnectionState.DISCONNECTED)
        _LOGGER.debug("Disconnected from %s on request", self._address)

    async def handle_connection_lost(self) -> None:
        """Account for an unexpected loss. Reconnecting is left to the owner."""
        self._record_failure()
        if not self._state_machine.transition(ConnectionEvent.CONNECTION_LOST):
            self._state_machine.force_state(ConnectionState.RECONNECTING)
        _LOGGER.warning(
            "Connection to %s lost; next attempt waits %.1fs",
            self._address,
            self._backoff,
        )

    def reset_failures(self) -> None:
        """Forget failures so the next attempt happens immediately."""
        _LOGGER.info("Resetting connection failure tracking")
        self._failures = 0
        self._backoff = self.INITIAL_BACKOFF
        self._state_machine.reset()

    def get_failure_info(self) -> dict:
        """Snapshot of the failure tracking, for diagnostics."""
        return {
            "consecutive_failures": self._failures,
            "backoff_time": self._backoff,
            "last_attempt": self._last_attempt,
            "state": self.connection_state,
        }

    def _handle_disconnect(self, client) -> None:
        """Disconnect callback handed to the transport; must stay synchronous."""
        if self._closing:
            return
        _LOGGER.debug(
            "Link to %s dropped in state %s",
            getattr(client, "address", self._address),
            self._state_machine.state.name,
        )
        for listener in list(self._lost_listeners):
            try:
                listener()
            except Exception as err:
                _LOGGER.error("Error in connection-lost listener: %s", err)
        task = asyncio.get_running_loop().create_task(self.handle_connection_lost())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _failure_limit_expired(self) -> bool:
        """False while the consecutive failure limit is in force."""
        if self._failures < self.MAX_CONSECUTIVE_FAILURES:
            return True
        idle = time.time() - self._last_attempt
        if idle < self.MAX_BACKOFF:
            _LOGGER.error(
                "%d consecutive connection failures; retrying in %.1fs",
                self._failures,
                self.MAX_BACKOFF - idle,
            )
            return False
        _LOGGER.info("Failure cool-down of %.0fs over, retrying", self.MAX_BACKOFF)
        self._failures = 0
        self._backoff = self.INITIAL_BACKOFF
        return True

    async def _wait_for_backoff(self) -> None:
        if self._failures == 0:
            return
        remaining = self._backoff - (time.time() - self._last_attempt)
        if remaining > 0:
            _LOGGER.debug(
                "Backing off %.1fs (%d/%d failures)",
                remaining,
                self._failures,
                self.MAX_CONSECUTIVE_FAILURES,
            )
            await asyncio.sleep(remaining)

    def _record_failure(self) -> None:
        self._failures += 1
        self._backoff = min(self._backoff * 2, self.MAX_BACKOFF)
