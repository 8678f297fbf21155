"""Tests for RemoteDevice connection lifecycle and restoration."""

import asyncio

import pytest

from remote_events.device import RemoteDevice
from remote_events.domain.exceptions import InvalidatedSessionError
from remote_events.infrastructure.transport import BleakEventTransport
from tests.doubles import FakeClock, FakeEventTransport, FakeFrameCodec
from tests.doubles.addresses import SWITCH

ADDRESS = "AA:BB:CC:DD:EE:FF"


@pytest.fixture
def fake_transport():
    return FakeEventTransport()


@pytest.fixture
def device(fake_transport):
    return RemoteDevice(ADDRESS, fake_transport, clock=FakeClock())


async def reconnect(device: RemoteDevice, transport: FakeEventTransport) -> None:
    """Drop the link and connect again without waiting out the backoff."""
    transport.drop_connection()
    await asyncio.sleep(0)
    device.connection.reset_failures()
    assert await device.connect()


class TestConnect:
    """Sessions follow the connection."""

    @pytest.mark.asyncio
    async def test_connect_opens_session(self, device, fake_transport):
        assert device.session is None

        assert await device.connect() is True

        assert device.is_connected
        assert device.session is not None
        assert fake_transport.address == ADDRESS

    @pytest.mark.asyncio
    async def test_connect_twice_keeps_session(self, device, fake_transport):
        await device.connect()
        session = device.session

        await device.connect()

        assert device.session is session
        assert fake_transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_failed_connect(self, device, fake_transport):
        fake_transport.fail_next("connect")

        assert await device.connect() is False
        assert device.session is None

    @pytest.mark.asyncio
    async def test_events_require_session(self, device):
        with pytest.raises(InvalidatedSessionError):
            device.event(0x01, 0x01)

    @pytest.mark.asyncio
    async def test_event_is_memoised(self, device):
        await device.connect()
        assert device.event(0x01, 0x01, kind="switch") is device.event(0x01, 0x01)
        assert device.data(0x04, 0x01).address.module == 0x04

    @pytest.mark.asyncio
    async def test_disconnect_invalidates(self, device):
        await device.connect()
        switch = device.event(0x01, 0x01)

        await device.disconnect()

        assert not switch.is_valid
        assert device.session is None
        with pytest.raises(InvalidatedSessionError):
            switch.start_logging()


class TestConnectionLoss:
    """Unexpected disconnects invalidate immediately."""

    @pytest.mark.asyncio
    async def test_drop_invalidates_events(self, device, fake_transport):
        await device.connect()
        switch = device.event(0x01, 0x01)

        fake_transport.drop_connection()

        assert not switch.is_valid
        assert device.session is None
        with pytest.raises(InvalidatedSessionError):
            switch.accumulate()

    @pytest.mark.asyncio
    async def test_reconnect_opens_new_session(self, device, fake_transport):
        await device.connect()
        old = device.session
        old_switch = device.event(0x01, 0x01)

        await reconnect(device, fake_transport)

        assert device.session is not old
        assert device.event(0x01, 0x01) is not old_switch


class TestRestore:
    """Identifier restoration across reconnects."""

    @pytest.mark.asyncio
    async def test_restore_after_reconnect(self, device, fake_transport):
        await device.connect()
        switch = device.event(0x01, 0x01, kind="switch")
        original = switch.accumulate().periodic_sample(1000, identifier="slow-presses")
        original_chain = original.recipe.chain()

        await reconnect(device, fake_transport)
        restored = device.restore("slow-presses")

        assert restored is not original
        assert restored.is_valid
        assert restored.recipe.chain() == original_chain
        assert restored.root.address == SWITCH

    @pytest.mark.asyncio
    async def test_restored_event_streams(self, device, fake_transport):
        await device.connect()
        device.event(0x01, 0x01, kind="switch").accumulate(identifier="presses")
        await reconnect(device, fake_transport)
        seen = []

        await device.restore("presses").start_notifications(
            lambda value, err: seen.append(value)
        )
        fake_transport.emit(SWITCH, 1)
        fake_transport.emit(SWITCH, 1)

        assert seen == [1, 2]

    @pytest.mark.asyncio
    async def test_restore_unknown(self, device):
        await device.connect()
        assert device.restore("nope") is None

    def test_restore_while_disconnected(self, device):
        with pytest.raises(InvalidatedSessionError):
            device.restore("presses")


class TestBleFactory:
    """RemoteDevice.ble wires the bleak transport."""

    def test_ble_device_uses_bleak_transport(self):
        device = RemoteDevice.ble(ADDRESS, FakeFrameCodec())
        assert isinstance(device.connection.transport, BleakEventTransport)
        assert device.address == ADDRESS
