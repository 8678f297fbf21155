"""Custom exceptions for the remote event core.

Construction-time validation errors (arguments, identifiers, session
mismatches) are raised synchronously at the offending call. Remote
failures are never raised across an asynchronous boundary; they are
delivered as ``TransportError`` instances through the completion channel
of the operation (notification handler, download completion, or the
``OperationResult`` of the returned task).
"""

import asyncio


class RemoteEventsError(Exception):
    """Base class for every exception raised by this package."""


class InvalidatedSessionError(RemoteEventsError):
    """Operation attempted on a register whose session has been invalidated.

    Registers and events are bound to the connection session that created
    them. Once that connection drops, every object of the session is dead
    and must be re-obtained (or restored by identifier) from the new one.
    """


class InvalidSourceError(InvalidatedSessionError):
    """Filter derivation attempted from an invalidated source event."""


class InvalidArgumentError(RemoteEventsError, ValueError):
    """Malformed filter parameters, e.g. a non-positive sample period."""


class DuplicateIdentifierError(RemoteEventsError):
    """Identifier is already bound to another event in this session."""


class CrossSessionError(RemoteEventsError):
    """Objects from different device sessions were combined."""


class InvalidCommandSequenceError(RemoteEventsError):
    """Captured command block contains a call the device cannot execute.

    Raised for calls carrying a host-side callback and for nested capture
    attempts. No upload takes place when this is raised.
    """


class DownloadInProgressError(RemoteEventsError):
    """A log download for this event is already in flight."""


class TransportError(RemoteEventsError):
    """Underlying communication failure.

    Delivered through callbacks and operation results, not raised to
    callers of the public event API.
    """


class ConnectionLostError(TransportError):
    """The connection to the device dropped while an operation was pending."""


def as_transport_error(err: BaseException) -> TransportError:
    """Normalise any failure to the TransportError delivered to callbacks."""
    if isinstance(err, TransportError):
        return err
    if isinstance(err, asyncio.TimeoutError):
        return TransportError("Remote operation timed out")
    return TransportError(f"{type(err).__name__}: {err}")
