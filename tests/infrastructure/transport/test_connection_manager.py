"""Tests for ConnectionManager.

These tests verify connection lifecycle management, exponential backoff,
failure tracking and connection-lost notification.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from remote_events.infrastructure.state_machines import ConnectionState
from remote_events.infrastructure.transport import ConnectionManager
from tests.doubles import FakeEventTransport

ADDRESS = "AA:BB:CC:DD:EE:FF"


@pytest.fixture
def fake_transport():
    return FakeEventTransport()


@pytest.fixture
def manager(fake_transport):
    return ConnectionManager(fake_transport)


@pytest.fixture
def no_backoff_sleep():
    """Skip the real backoff waits."""
    with patch(
        "remote_events.infrastructure.transport.connection_manager.asyncio.sleep",
        new=AsyncMock(),
    ) as sleep:
        yield sleep


class TestEnsureConnected:
    """Test ensure_connected method."""

    def test_initial_state(self, manager):
        assert manager.connection_state == "disconnected"
        assert manager.get_failure_info()["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_success(self, manager, fake_transport):
        assert await manager.ensure_connected(ADDRESS) is True
        assert fake_transport.is_connected
        assert manager.connection_state == "connected"

    @pytest.mark.asyncio
    async def test_already_connected(self, manager, fake_transport):
        await manager.ensure_connected(ADDRESS)
        assert await manager.ensure_connected(ADDRESS) is True
        assert fake_transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_failure(self, manager, fake_transport):
        fake_transport.fail_next("connect")

        assert await manager.ensure_connected(ADDRESS) is False
        assert manager.connection_state == "failed"
        assert manager.get_failure_info()["consecutive_failures"] == 1

    @pytest.mark.asyncio
    async def test_transport_exception_is_failure(self):
        bad_transport = Mock()
        bad_transport.connect = AsyncMock(side_effect=OSError("adapter gone"))
        bad_transport.is_connected = False
        bad_manager = ConnectionManager(bad_transport)

        assert await bad_manager.ensure_connected(ADDRESS) is False
        assert bad_manager.connection_state == "failed"


class TestExponentialBackoff:
    """Test exponential backoff behavior."""

    @pytest.mark.asyncio
    async def test_backoff_increases(self, manager, fake_transport, no_backoff_sleep):
        fake_transport.fail_next("connect")
        await manager.ensure_connected(ADDRESS)
        first = manager.get_failure_info()["backoff_time"]

        fake_transport.fail_next("connect")
        await manager.ensure_connected(ADDRESS)

        assert manager.get_failure_info()["backoff_time"] > first
        no_backoff_sleep.assert_awaited()

    @pytest.mark.asyncio
    async def test_backoff_resets_on_success(self, manager, fake_transport, no_backoff_sleep):
        fake_transport.fail_next("connect")
        await manager.ensure_connected(ADDRESS)

        assert await manager.ensure_connected(ADDRESS) is True
        info = manager.get_failure_info()
        assert info["consecutive_failures"] == 0
        assert info["backoff_time"] == ConnectionManager.INITIAL_BACKOFF

    @pytest.mark.asyncio
    async def test_max_consecutive_failures(self, manager, fake_transport, no_backoff_sleep):
        for _ in range(ConnectionManager.MAX_CONSECUTIVE_FAILURES):
            fake_transport.fail_next("connect")
            await manager.ensure_connected(ADDRESS)

        assert await manager.ensure_connected(ADDRESS) is False
        assert fake_transport.connect_calls == ConnectionManager.MAX_CONSECUTIVE_FAILURES

    @pytest.mark.asyncio
    async def test_reset_failures(self, manager, fake_transport):
        fake_transport.fail_next("connect")
        await manager.ensure_connected(ADDRESS)

        manager.reset_failures()

        info = manager.get_failure_info()
        assert info["consecutive_failures"] == 0
        assert info["backoff_time"] == ConnectionManager.INITIAL_BACKOFF
        assert manager.connection_state == "disconnected"


class TestConnectionLost:
    """Unexpected disconnects."""

    @pytest.mark.asyncio
    async def test_listeners_run_synchronously(self, manager, fake_transport):
        listener = Mock()
        manager.add_connection_lost_listener(listener)
        await manager.ensure_connected(ADDRESS)

        fake_transport.drop_connection()

        listener.assert_called_once_with()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_state_follows_drop(self, manager, fake_transport):
        await manager.ensure_connected(ADDRESS)

        fake_transport.drop_connection()
        await asyncio.sleep(0)

        assert manager.connection_state == "reconnecting"
        assert manager.get_failure_info()["consecutive_failures"] == 1

    @pytest.mark.asyncio
    async def test_loss_bookkeeping_task_is_kept(self, manager, fake_transport):
        await manager.ensure_connected(ADDRESS)

        fake_transport.drop_connection()
        [task] = manager._tasks
        await task

        assert manager._tasks == set()
        assert manager.connection_state == "reconnecting"

    @pytest.mark.asyncio
    async def test_listener_exception_contained(self, manager, fake_transport):
        second = Mock()
        manager.add_connection_lost_listener(Mock(side_effect=RuntimeError("boom")))
        manager.add_connection_lost_listener(second)
        await manager.ensure_connected(ADDRESS)

        fake_transport.drop_connection()

        second.assert_called_once()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_requested_disconnect_not_reported(self, manager, fake_transport):
        listener = Mock()
        # the real link reports its own teardown through the callback
        fake_transport.disconnect = AsyncMock(side_effect=fake_transport.drop_connection)
        manager.add_connection_lost_listener(listener)
        await manager.ensure_connected(ADDRESS)

        await manager.disconnect()

        listener.assert_not_called()
        assert manager.connection_state == "disconnected"
        assert manager.get_failure_info()["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_reconnect_from_reconnecting(self, manager, no_backoff_sleep):
        await manager.ensure_connected(ADDRESS)
        await manager.handle_connection_lost()
        assert manager._state_machine.state == ConnectionState.RECONNECTING

        assert await manager.ensure_connected(ADDRESS) is True
        assert manager.connection_state == "connected"
        assert manager.get_failure_info()["consecutive_failures"] == 0
