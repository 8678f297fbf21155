"""Infrastructure layer decorators."""

from .error_handler import deliver_result, handle_transport_errors
from .session_decorator import require_valid_session

__all__ = [
    "deliver_result",
    "handle_transport_errors",
    "require_valid_session",
]
