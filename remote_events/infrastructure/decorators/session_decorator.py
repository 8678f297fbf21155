"""Session validity decorators."""

import inspect
import logging
from functools import wraps
from typing import Callable

from ...domain.exceptions import InvalidatedSessionError

_LOGGER = logging.getLogger(__name__)


def require_valid_session(register_param: str = "event", error=InvalidatedSessionError):
    """Decorator to ensure the register argument's session is alive.

    Args:
        register_param: Name of the parameter holding the register
        error: Exception type raised when the session is gone

    Example:
        @require_valid_session(register_param="event")
        def start(self, event: Event, handler) -> asyncio.Task:
            # Session is guaranteed valid here
            ...
    """

    def decorator(func: Callable):
        params = list(inspect.signature(func).parameters.keys())

        @wraps(func)
        def wrapper(*args, **kwargs):
            register = kwargs.get(register_param)
            if register is None and register_param in params:
                idx = params.index(register_param)
                if idx < len(args):
                    register = args[idx]

            if register is None:
                raise ValueError(f"No {register_param} provided")

            if not register.is_valid:
                _LOGGER.debug(
                    "Rejected %s on %s: session invalidated", func.__name__, register
                )
                raise error(
                    f"{register} belongs to invalidated session "
                    f"{register.session.session_id}"
                )

            return func(*args, **kwargs)

        return wrapper

    return decorator
