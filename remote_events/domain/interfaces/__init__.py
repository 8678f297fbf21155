"""Domain interfaces for the remote event core.

These are the narrow collaborator contracts the core depends on. Fakes
implementing them drive the test suite; the bleak-based transport
implements IEventTransport for real hardware.
"""

from .i_event_transport import IEventTransport, StreamCallback
from .i_entry_decoder import IEntryDecoder
from .i_frame_codec import IFrameCodec

__all__ = [
    "IEventTransport",
    "StreamCallback",
    "IEntryDecoder",
    "IFrameCodec",
]
