"""Error handling decorators for standardized exception handling."""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable

from bleak.exc import BleakError

from ...domain.exceptions import TransportError, as_transport_error
from ...domain.value_objects import OperationResult


def handle_transport_errors(
    operation_name: str,
    logger: logging.Logger = None,
    reraise: bool = True,
    default_return: Any = None,
):
    """Decorator for standardized transport error handling.

    BLE errors are re-raised as TransportError so nothing above the
    transport needs to know about bleak.

    Args:
        operation_name: Human-readable operation name for logging
        logger: Logger to use (defaults to function's module logger)
        reraise: Whether to re-raise exception after logging
        default_return: Value to return on error if not re-raising

    Example:
        @handle_transport_errors("BLE write", reraise=True)
        async def _write(self, frame: bytes) -> None:
            await self._client.write_gatt_char(UUID, frame, response=True)
    """

    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            log = logger or logging.getLogger(func.__module__)
            try:
                return await func(*args, **kwargs)
            except asyncio.TimeoutError as err:
                log.warning("%s timed out: %s", operation_name, err)
                if reraise:
                    raise
                return default_return
            except TransportError as err:
                log.error("%s transport error: %s", operation_name, err)
                if reraise:
                    raise
                return default_return
            except BleakError as err:
                log.error("%s BLE error: %s", operation_name, err)
                if reraise:
                    raise TransportError(f"{operation_name} failed: {err}") from err
                return default_return
            except Exception as err:
                log.error(
                    "%s unexpected error: %s",
                    operation_name,
                    err,
                    exc_info=True,
                )
                if reraise:
                    raise
                return default_return

        return async_wrapper

    return decorator


def deliver_result(operation_name: str, logger: logging.Logger = None):
    """Decorator turning failures of a remote operation into an OperationResult.

    The wrapped coroutine returns an OperationResult on success. Any
    exception it raises is logged and delivered as
    ``OperationResult(success=False, error=TransportError)`` so nothing is
    thrown across the asynchronous boundary. Cancellation propagates.

    Example:
        @deliver_result("Erase commands")
        async def _erase(self, event):
            await self._session.request(event.address, command)
            return OperationResult.ok()
    """

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs) -> OperationResult:
            log = logger or logging.getLogger(func.__module__)
            try:
                return await func(*args, **kwargs)
            except (TransportError, asyncio.TimeoutError, BleakError) as err:
                error = as_transport_error(err)
                log.warning("%s failed: %s", operation_name, error)
                return OperationResult.failed(error)
            except Exception as err:
                log.error(
                    "%s unexpected error: %s", operation_name, err, exc_info=True
                )
                return OperationResult.failed(as_transport_error(err))

        return wrapper

    return decorator
