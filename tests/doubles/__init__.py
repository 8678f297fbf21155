"""Test doubles for unit testing.

Test doubles are fake implementations of interfaces used for testing.
They're faster and more reliable than mocking, and they implement the
actual interface contracts.

We primarily use Fakes because they:
- Actually implement the interface
- Can be reused across many tests
- Provide realistic behavior (a device with registers, streams and logs)

Example:
    >>> from tests.doubles import FakeEventTransport
    >>> transport = FakeEventTransport(connected=True)
    >>> transport.logs[address] = [1, 2, 3]
    >>> await transport.send_register_command(address, RegisterCommand(CommandKind.LOG_ENTRY_COUNT))
    3
"""

from .fake_clock import FakeClock
from .fake_frame_codec import FakeFrameCodec
from .fake_transport import FakeEventTransport

__all__ = ["FakeClock", "FakeEventTransport", "FakeFrameCodec"]
