"""Value objects for the remote event core.

Value objects are immutable domain primitives that:
- Have no identity (equality based on value, not reference)
- Are immutable (cannot be changed after creation)
- Validate their invariants at construction
"""

from .register_address import RegisterAddress
from .register_command import CommandKind, RegisterCommand
from .filter_spec import FilterKind, FilterSpec, MAX_PERIOD_MS
from .event_recipe import EventRecipe
from .instruction import Instruction
from .operation_result import OperationResult

__all__ = [
    "RegisterAddress",
    "CommandKind",
    "RegisterCommand",
    "FilterKind",
    "FilterSpec",
    "MAX_PERIOD_MS",
    "EventRecipe",
    "Instruction",
    "OperationResult",
]
