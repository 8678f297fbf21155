"""IdentifierRegistry service.

Maps identifiers to event recipes so an identified derived event can be
looked up again, or rebuilt from scratch after a reconnect.

Two tables are kept:
- recipes: identifier -> EventRecipe, kept for the lifetime of the device
- bindings: identifier -> live Event of the attached session, dropped
  whenever the session is detached
"""

import dataclasses
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from ...domain.entities import Event
from ...domain.exceptions import DuplicateIdentifierError, InvalidatedSessionError
from ...domain.value_objects import EventRecipe

if TYPE_CHECKING:
    from ..device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class IdentifierRegistry:
    """Registry of identified events and their construction recipes.

    Registration is serialised with a re-entrant lock; restoring an event
    can recurse into restoring its identified sources.

    Example:
        >>> registry = device.registry
        >>> registry.identifiers()
        ['press-count']
        >>> presses = registry.restore("press-count")
        >>> presses.recipe.chain()
        [FilterSpec(kind=<FilterKind.ACCUMULATE: 'accumulate'>, ...)]
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._session: Optional["DeviceSession"] = None
        self._recipes: Dict[str, EventRecipe] = {}
        self._bindings: Dict[str, Event] = {}

    @property
    def session(self) -> Optional["DeviceSession"]:
        return self._session

    def attach(self, session: "DeviceSession") -> None:
        """Make ``session`` the one new bindings are made in."""
        with self._lock:
            if self._session is not session:
                self._bindings.clear()
            self._session = session

    def detach(self, session: "DeviceSession") -> None:
        """Drop every binding of ``session``; recipes are kept."""
        with self._lock:
            if self._session is not session:
                return
            _LOGGER.debug(
                "Releasing %d bindings of session %d",
                len(self._bindings),
                session.session_id,
            )
            self._bindings.clear()
            self._session = None

    def ensure_available(self, identifier: str) -> None:
        """Raise if ``identifier`` is bound in the current session.

        Raises:
            DuplicateIdentifierError: If the identifier is taken
        """
        with self._lock:
            bound = self._bindings.get(identifier)
            if bound is not None:
                raise DuplicateIdentifierError(
                    f"Identifier '{identifier}' is already bound to {bound}"
                )

    def bind(self, identifier: str, event: Event) -> None:
        """Bind ``identifier`` to ``event`` and record its recipe.

        Raises:
            DuplicateIdentifierError: If the identifier is taken; the
                existing binding is left intact
            InvalidatedSessionError: If ``event`` is not from the
                attached session
        """
        with self._lock:
            if event.session is not self._session:
                raise InvalidatedSessionError(
                    f"{event} does not belong to the attached session"
                )
            self.ensure_available(identifier)
            event._bind_identifier(identifier)
            self._bindings[identifier] = event
            self._recipes[identifier] = event.recipe
            _LOGGER.debug("Bound '%s' to %s", identifier, event)

    def lookup(self, identifier: str) -> Optional[Event]:
        """Live event bound to ``identifier`` in the current session."""
        with self._lock:
            return self._bindings.get(identifier)

    def recipe(self, identifier: str) -> Optional[EventRecipe]:
        with self._lock:
            return self._recipes.get(identifier)

    def identifiers(self) -> List[str]:
        """Every identifier with a recipe, sorted."""
        with self._lock:
            return sorted(self._recipes)

    def forget(self, identifier: str) -> bool:
        """Remove ``identifier``'s recipe and binding.

        The event itself, if alive, keeps working but can no longer be
        restored.

        Returns:
            True if the identifier was known
        """
        with self._lock:
            event = self._bindings.pop(identifier, None)
            if event is not None:
                event._bind_identifier(None)
            return self._recipes.pop(identifier, None) is not None

    def restore(self, identifier: str) -> Optional[Event]:
        """Live event for ``identifier``, rebuilding it if needed.

        Within one session the bound instance is returned. After a
        reconnect the event is rebuilt from its recipe: identified
        sources are restored first so shared chains stay shared, the rest
        of the chain is derived anew.

        Returns:
            The event, or None if the identifier is unknown

        Raises:
            InvalidatedSessionError: If no session is attached
        """
        with self._lock:
            session = self._session
            if session is None or not session.is_valid:
                raise InvalidatedSessionError(
                    f"Cannot restore '{identifier}' without a live session"
                )

            bound = self._bindings.get(identifier)
            if bound is not None:
                return bound

            recipe = self._recipes.get(identifier)
            if recipe is None:
                _LOGGER.debug("No recipe for identifier '%s'", identifier)
                return None

            if recipe.is_root:
                event = session.root_event(recipe.address, recipe.kind)
                self.bind(identifier, event)
            else:
                source = self._resolve(session, recipe.source)
                event = session.graph.derive(source, recipe.filter, identifier)

            _LOGGER.info("Restored '%s' as %s", identifier, event)
            return event

    def _resolve(self, session: "DeviceSession", recipe: EventRecipe) -> Event:
        if recipe.identifier is not None and recipe.identifier in self._recipes:
            return self.restore(recipe.identifier)
        if recipe.is_root:
            return session.root_event(recipe.address, recipe.kind)
        return session.graph.derive(self._resolve(session, recipe.source), recipe.filter)

    def export_recipes(self) -> Dict[str, Dict[str, Any]]:
        """Every recipe in plain dictionary form, keyed by identifier."""
        with self._lock:
            return {key: recipe.to_dict() for key, recipe in self._recipes.items()}

    def import_recipes(
        self,
        recipes: Mapping[str, Union[EventRecipe, Dict[str, Any]]],
        replace: bool = False,
    ) -> int:
        """Add recipes, e.g. loaded from a previous run.

        Imported identifiers are restorable but not bound until restored.

        Args:
            recipes: Identifier -> recipe (or its dictionary form)
            replace: Overwrite recipes already known

        Returns:
            Number of recipes imported

        Raises:
            DuplicateIdentifierError: If an identifier is already known
                and ``replace`` is False; nothing is imported then
        """
        parsed = {}
        for identifier, recipe in recipes.items():
            if not isinstance(recipe, EventRecipe):
                recipe = EventRecipe.from_dict(recipe)
            parsed[identifier] = dataclasses.replace(recipe, identifier=identifier)

        with self._lock:
            if not replace:
                clashes = sorted(set(parsed) & set(self._recipes))
                if clashes:
                    raise DuplicateIdentifierError(
                        f"Identifiers already registered: {', '.join(clashes)}"
                    )
            for identifier in parsed:
                if identifier in self._bindings:
                    self._bindings.pop(identifier)._bind_identifier(None)
            self._recipes.update(parsed)

        _LOGGER.info("Imported %d recipes", len(parsed))
        return len(parsed)
