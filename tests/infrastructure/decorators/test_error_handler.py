"""Tests for error handling decorators."""

import asyncio
import inspect
import logging

import pytest
from bleak.exc import BleakError

from remote_events.domain.exceptions import ConnectionLostError, TransportError
from remote_events.domain.value_objects import OperationResult
from remote_events.infrastructure.decorators import (
    deliver_result,
    handle_transport_errors,
)


class TestHandleTransportErrors:
    """Test error handling decorator."""

    @pytest.mark.asyncio
    async def test_successful_async_execution(self):
        @handle_transport_errors("test operation")
        async def test_func():
            return "success"

        assert await test_func() == "success"

    @pytest.mark.asyncio
    async def test_timeout_error_reraise(self):
        @handle_transport_errors("test operation", reraise=True)
        async def test_func():
            raise asyncio.TimeoutError("timeout")

        with pytest.raises(asyncio.TimeoutError):
            await test_func()

    @pytest.mark.asyncio
    async def test_timeout_error_no_reraise(self):
        @handle_transport_errors(
            "test operation", reraise=False, default_return="default"
        )
        async def test_func():
            raise asyncio.TimeoutError("timeout")

        assert await test_func() == "default"

    @pytest.mark.asyncio
    async def test_bleak_error_wrapped(self):
        """BLE errors never escape as bleak types."""

        @handle_transport_errors("BLE write", reraise=True)
        async def test_func():
            raise BleakError("GATT error")

        with pytest.raises(TransportError, match="BLE write failed: GATT error") as info:
            await test_func()
        assert isinstance(info.value.__cause__, BleakError)

    @pytest.mark.asyncio
    async def test_transport_error_passes_through(self):
        @handle_transport_errors("test operation", reraise=True)
        async def test_func():
            raise ConnectionLostError("gone")

        with pytest.raises(ConnectionLostError):
            await test_func()

    @pytest.mark.asyncio
    async def test_generic_exception_logged(self, caplog):
        @handle_transport_errors("test operation", reraise=False)
        async def test_func():
            raise ValueError("test error")

        with caplog.at_level(logging.ERROR):
            await test_func()

        assert "test operation unexpected error" in caplog.text
        assert "test error" in caplog.text

    @pytest.mark.asyncio
    async def test_wrapper_is_coroutine_function(self):
        @handle_transport_errors("test operation", reraise=False, default_return=42)
        async def test_func():
            raise ValueError("error")

        assert inspect.iscoroutinefunction(test_func)
        assert await test_func() == 42


class TestDeliverResult:
    """Failures become failed OperationResults."""

    @pytest.mark.asyncio
    async def test_success_returned_unchanged(self):
        @deliver_result("test operation")
        async def test_func():
            return OperationResult.ok(7)

        result = await test_func()
        assert result.success
        assert result.value == 7

    @pytest.mark.asyncio
    async def test_transport_error_delivered(self):
        @deliver_result("test operation")
        async def test_func():
            raise ConnectionLostError("gone")

        result = await test_func()
        assert not result.success
        assert isinstance(result.error, ConnectionLostError)

    @pytest.mark.asyncio
    async def test_timeout_normalised(self):
        @deliver_result("test operation")
        async def test_func():
            raise asyncio.TimeoutError()

        result = await test_func()
        assert type(result.error) is TransportError
        assert "timed out" in str(result.error)

    @pytest.mark.asyncio
    async def test_unexpected_error_logged_and_delivered(self, caplog):
        @deliver_result("test operation")
        async def test_func():
            raise KeyError("slot")

        with caplog.at_level(logging.ERROR):
            result = await test_func()

        assert isinstance(result.error, TransportError)
        assert "KeyError" in str(result.error)
        assert "test operation unexpected error" in caplog.text

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        @deliver_result("test operation")
        async def test_func():
            await asyncio.sleep(10)

        task = asyncio.ensure_future(test_func())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
