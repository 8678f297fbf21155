"""OperationResult value object.

Every remote operation returns a task resolving to one of these; remote
failures travel in ``error`` instead of being raised.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class OperationResult:
    """Result of a remote operation.

    Attributes:
        success: Whether the device confirmed the operation
        error: TransportError describing the failure, if any
        value: Operation-specific payload (value read, logging state, ...)
    """

    success: bool
    error: Optional[Exception] = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error: Exception) -> "OperationResult":
        return cls(success=False, error=error)
