"""
App primitive: the resources an application uses.

An app registers the feeds, graphs and groups it works with and picks at
most one default of each kind. Every change is a Gate action guarded by
SET_DEFAULT or REGISTER_RESOURCE and by the app's rule module, if any.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import Any

from rulegate.exceptions import InvalidOperation
from rulegate.events import EventType
from rulegate.primitives.base import Primitive
from rulegate.rules.base import Discipline
from rulegate.rules.dispatcher import ActionSpec
from rulegate.slots import DefaultSlotRegistry
from rulegate.types import Permissions, Principal

logger = logging.getLogger(__name__)

RESOURCE_KINDS = ("feed", "graph", "group")

REGISTER = ActionSpec("register_resource", Discipline.GATE, Permissions.REGISTER_RESOURCE)
REMOVE = ActionSpec("remove_resource", Discipline.GATE, Permissions.REGISTER_RESOURCE)
SET_DEFAULT = ActionSpec("set_default", Discipline.GATE, Permissions.SET_DEFAULT)


class App(Primitive):
    """
    An application and the primitives it uses.

    Example:
        >>> app = core.create_app()
        >>> app.set_default(owner, "feed", feed.id)
        >>> app.default("feed") == feed.id
        True
    """

    kind = "app"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._slots = {
            kind: DefaultSlotRegistry(self._state, f"{self.id}.{kind}s") for kind in RESOURCE_KINDS
        }

    def register(self, caller: Principal, kind: str, resource: Hashable, data: bytes = b"") -> bool:
        """
        Register a resource (idempotent).

        Returns:
            True if the resource was newly registered.

        Raises:
            AccessDenied: Caller lacks REGISTER_RESOURCE on the app.
            InvalidOperation: Unknown kind.
        """
        slot = self._slot(kind, "register")

        def mutation() -> bool:
            added = slot.register(resource)
            if added:
                self._emit(EventType.RESOURCE_REGISTERED, {"kind": kind, "resource": resource})
            return added

        return self.dispatcher.dispatch(
            REGISTER,
            caller,
            mutation,
            modules=[self.rule_module],
            entity=resource,
            params={"kind": kind},
            data=data,
        )

    def remove(self, caller: Principal, kind: str, resource: Hashable, data: bytes = b"") -> bool:
        """
        Unregister a resource; clears the default first if it is the default.

        Returns:
            True if the resource was registered.

        Raises:
            AccessDenied: Caller lacks REGISTER_RESOURCE on the app.
            InvalidOperation: Unknown kind.
        """
        slot = self._slot(kind, "remove")

        def mutation() -> bool:
            was_default = slot.current_default() == resource
            removed = slot.remove(resource)
            if was_default:
                self._emit(EventType.DEFAULT_REMOVED, {"kind": kind, "resource": resource})
            if removed:
                self._emit(EventType.RESOURCE_REMOVED, {"kind": kind, "resource": resource})
            return removed

        return self.dispatcher.dispatch(
            REMOVE,
            caller,
            mutation,
            modules=[self.rule_module],
            entity=resource,
            params={"kind": kind},
            data=data,
        )

    def set_default(
        self,
        caller: Principal,
        kind: str,
        resource: Hashable | None,
        data: bytes = b"",
    ) -> None:
        """
        Set (or clear, with None) the default resource of a kind.

        Raises:
            AccessDenied: Caller lacks SET_DEFAULT on the app.
            DefaultSlotInvalid: Clearing while no default is set.
            InvalidOperation: Unknown kind.
        """
        slot = self._slot(kind, "set_default")

        def mutation() -> None:
            previous = slot.current_default()
            newly_registered = resource is not None and not slot.is_registered(resource)
            had_default = slot.set_default(resource)

            if newly_registered:
                self._emit(EventType.RESOURCE_REGISTERED, {"kind": kind, "resource": resource})
            if resource is None:
                self._emit(EventType.DEFAULT_REMOVED, {"kind": kind, "resource": previous})
            elif had_default:
                self._emit(
                    EventType.DEFAULT_UPDATED,
                    {"kind": kind, "resource": resource, "previous": previous},
                )
            else:
                self._emit(EventType.DEFAULT_ADDED, {"kind": kind, "resource": resource})
            if previous is not None and previous != resource:
                self._emit(EventType.RESOURCE_REMOVED, {"kind": kind, "resource": previous})

        self.dispatcher.dispatch(
            SET_DEFAULT,
            caller,
            mutation,
            modules=[self.rule_module],
            entity=resource,
            params={"kind": kind},
            data=data,
        )

    def default(self, kind: str) -> Hashable | None:
        """The default resource of a kind, or None."""
        return self._slot(kind, "default").current_default()

    def registered(self, kind: str) -> tuple[Hashable, ...]:
        """All registered resources of a kind."""
        return self._slot(kind, "registered").registered()

    def _slot(self, kind: str, operation: str) -> DefaultSlotRegistry:
        slot = self._slots.get(kind)
        if slot is None:
            raise InvalidOperation(
                operation, f"unknown resource kind '{kind}'", {"kinds": list(RESOURCE_KINDS)}
            )
        return slot
