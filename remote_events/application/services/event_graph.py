"""EventGraph service: derivation of filtered events.

Root events come from the session's memoising factory; every derivation
here allocates a fresh event the caller owns. Identifier-qualified
derivations are additionally bound in the identifier registry together
with their construction recipe.
"""

import logging
from typing import TYPE_CHECKING, Optional

from ...domain.entities import Event, Register
from ...domain.exceptions import (
    CrossSessionError,
    InvalidArgumentError,
    InvalidSourceError,
)
from ...domain.services import create_filter_state
from ...domain.value_objects import FilterKind, FilterSpec
from ...infrastructure.decorators import require_valid_session

if TYPE_CHECKING:
    from ..device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class EventGraph:
    """Service building the directed acyclic graph of events.

    Validation happens synchronously, in this order: source validity,
    filter parameters, session membership, identifier availability.
    Nothing is sent to the device here; a derived event takes a device
    filter slot only when a device-evaluated sink first needs it.

    Example:
        >>> graph = session.graph
        >>> sampled = graph.derive_periodic_sample(switch, 1000, identifier="slow")
        >>> sampled.source is switch
        True
    """

    def __init__(self, session: "DeviceSession"):
        self._session = session

    @require_valid_session(register_param="source", error=InvalidSourceError)
    def derive_accumulate(self, source: Event, identifier: Optional[str] = None) -> Event:
        """Derive the running sum of ``source``.

        Raises:
            InvalidSourceError: If ``source``'s session is gone
            DuplicateIdentifierError: If ``identifier`` is already bound
        """
        return self.derive(source, FilterSpec(FilterKind.ACCUMULATE), identifier)

    @require_valid_session(register_param="source", error=InvalidSourceError)
    def derive_periodic_sample(
        self, source: Event, period_ms: int, identifier: Optional[str] = None
    ) -> Event:
        """Derive an event firing at most once every ``period_ms``.

        Raises:
            InvalidSourceError: If ``source``'s session is gone
            InvalidArgumentError: If the period is not a positive integer
                within the configured maximum
            DuplicateIdentifierError: If ``identifier`` is already bound
        """
        spec = FilterSpec(FilterKind.PERIODIC_SAMPLE, period_ms=period_ms)
        limit = self._session.settings.max_period_ms
        if period_ms > limit:
            raise InvalidArgumentError(
                f"Sample period {period_ms} ms exceeds the configured maximum of {limit} ms"
            )
        return self.derive(source, spec, identifier)

    @require_valid_session(register_param="source", error=InvalidSourceError)
    def derive_read_coupled(
        self, source: Event, data: Register, identifier: Optional[str] = None
    ) -> Event:
        """Derive an event carrying a fresh read of ``data`` on every firing.

        Raises:
            InvalidSourceError: If ``source``'s session is gone
            CrossSessionError: If ``data`` belongs to another session
            DuplicateIdentifierError: If ``identifier`` is already bound
        """
        if not isinstance(data, Register):
            raise InvalidArgumentError(f"Expected a data register, got {data!r}")
        if data.session is not source.session:
            raise CrossSessionError(
                f"{data} belongs to session {data.session.session_id}, "
                f"{source} to session {source.session.session_id}"
            )
        spec = FilterSpec(
            FilterKind.READ_COUPLED, data_address=data.address, data_kind=data.kind
        )
        return self.derive(source, spec, identifier)

    def derive(
        self, source: Event, spec: FilterSpec, identifier: Optional[str] = None
    ) -> Event:
        """Apply ``spec`` to ``source`` and optionally bind ``identifier``.

        Common path of the typed derivations and of identifier restore.
        """
        source.ensure_valid()
        if source.session is not self._session:
            raise CrossSessionError(
                f"{source} does not belong to session {self._session.session_id}"
            )
        if identifier is not None:
            if not isinstance(identifier, str) or not identifier:
                raise InvalidArgumentError(
                    f"Identifier must be a non-empty string, got {identifier!r}"
                )
            self._session.registry.ensure_available(identifier)

        kind = spec.data_kind if spec.kind is FilterKind.READ_COUPLED else source.kind
        event = Event(
            self._session,
            None,
            kind,
            source=source,
            filter_state=create_filter_state(spec),
        )
        if identifier is not None:
            self._session.registry.bind(identifier, event)

        _LOGGER.debug("Derived %s from %s (%s)", event, source, spec)
        return event

