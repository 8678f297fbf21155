"""EventRecipe value object.

A recipe is the explicit, serialisable construction chain of an event:
the root register it originates from plus every filter applied on the way.
The identifier registry stores recipes so a derived event can be rebuilt
from scratch on a new connection session.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .filter_spec import FilterSpec
from .register_address import RegisterAddress


@dataclass(frozen=True)
class EventRecipe:
    """Construction recipe for a root or derived event.

    Exactly one of ``address`` (root) and ``filter`` + ``source``
    (derived) is populated.

    Attributes:
        kind: Register kind of the emitted payload (selects decoding)
        address: Root register address, root recipes only
        filter: Filter applied to the source, derived recipes only
        source: Recipe of the source event, derived recipes only
        identifier: Identifier the event was bound under, if any

    Example:
        >>> root = EventRecipe.root(RegisterAddress(0x01, 0x01), "switch")
        >>> total = EventRecipe.derived(FilterSpec(FilterKind.ACCUMULATE), root)
        >>> total.depth
        1
    """

    kind: str
    address: Optional[RegisterAddress] = None
    filter: Optional[FilterSpec] = None
    source: Optional["EventRecipe"] = None
    identifier: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the root/derived exclusivity."""
        if self.address is not None:
            if self.filter is not None or self.source is not None:
                raise ValueError("Root recipe cannot carry a filter or source")
        elif self.filter is None or self.source is None:
            raise ValueError("Derived recipe requires both a filter and a source")

    @classmethod
    def root(cls, address: RegisterAddress, kind: str) -> "EventRecipe":
        """Recipe for a physical (root) event."""
        return cls(kind=kind, address=address)

    @classmethod
    def derived(
        cls,
        spec: FilterSpec,
        source: "EventRecipe",
        identifier: Optional[str] = None,
    ) -> "EventRecipe":
        """Recipe for a filter applied to ``source``."""
        kind = spec.data_kind if spec.data_address is not None else source.kind
        return cls(kind=kind, filter=spec, source=source, identifier=identifier)

    @property
    def is_root(self) -> bool:
        """Whether this recipe describes a physical event."""
        return self.address is not None

    @property
    def depth(self) -> int:
        """Number of filters between the root and this event."""
        return 0 if self.source is None else self.source.depth + 1

    @property
    def root_address(self) -> RegisterAddress:
        """Address of the root register of the chain."""
        recipe = self
        while recipe.source is not None:
            recipe = recipe.source
        return recipe.address

    def chain(self) -> List[FilterSpec]:
        """Filters from the root outward."""
        if self.source is None:
            return []
        return self.source.chain() + [self.filter]

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary form (nested for the source chain)."""
        data: Dict[str, Any] = {"kind": self.kind}
        if self.identifier is not None:
            data["identifier"] = self.identifier
        if self.is_root:
            data["address"] = self.address.to_dict()
        else:
            data["filter"] = self.filter.to_dict()
            data["source"] = self.source.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventRecipe":
        """Inverse of to_dict."""
        if "address" in data:
            return cls(
                kind=data.get("kind", ""),
                address=RegisterAddress.from_dict(data["address"]),
                identifier=data.get("identifier"),
            )
        return cls(
            kind=data.get("kind", ""),
            filter=FilterSpec.from_dict(data["filter"]),
            source=cls.from_dict(data["source"]),
            identifier=data.get("identifier"),
        )

    def __str__(self) -> str:
        """String representation for logging."""
        steps = " -> ".join(str(spec) for spec in self.chain())
        text = self.root_address.to_hex()
        return f"{text} -> {steps}" if steps else text
