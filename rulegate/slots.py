"""
Default slots: "many registered, at most one default".

An app registers several feeds but has one default feed; the same goes
for graphs and other resources. DefaultSlotRegistry captures that pattern
once. The slot holds either nothing or a member of the registered set.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable

from rulegate.exceptions import DefaultSlotInvalid
from rulegate.state import StateContainer

logger = logging.getLogger(__name__)


class DefaultSlotRegistry:
    """
    Registered resources of one kind plus an optional default among them.

    Invariant: if a default is set, it is a member of the registered set.

    Callers run mutations inside an atomic block; the registry itself does
    not emit events but returns what callers need to emit them.

    Example:
        >>> feeds = DefaultSlotRegistry(StateContainer(), "app:1.feeds")
        >>> feeds.set_default("feed:1")
        False
        >>> feeds.set_default("feed:2")
        True
        >>> feeds.registered()
        ('feed:2',)
        >>> feeds.set_default(None)
        True
        >>> feeds.set_default(None)
        Traceback (most recent call last):
        DefaultSlotInvalid: Default slot 'app:1.feeds': no default is set
    """

    def __init__(self, state: StateContainer, name: str) -> None:
        self.name = name
        self._data = state.namespace(f"slots.{name}")
        self._data.setdefault("registered", ())
        self._data.setdefault("default", None)

    def register(self, resource: Hashable) -> bool:
        """
        Add a resource to the registered set (idempotent).

        Returns:
            True if the resource was not registered before.
        """
        if resource is None:
            raise ValueError("resource must not be None")
        registered = self._data["registered"]
        if resource in registered:
            return False
        self._data["registered"] = registered + (resource,)
        logger.debug(f"Slot '{self.name}': registered {resource}")
        return True

    def set_default(self, resource: Hashable | None) -> bool:
        """
        Set or clear the default.

        A concrete resource is registered if needed, and a previous
        different default is evicted from the registered set. Clearing
        (None) evicts the current default as well.

        Returns:
            True if a default was already held (callers emit Updated or
            Removed), False otherwise (callers emit Added).

        Raises:
            DefaultSlotInvalid: Clearing while no default is held.
        """
        current = self._data["default"]

        if resource is None:
            if current is None:
                raise DefaultSlotInvalid(self.name, "no default is set")
            self._data["default"] = None
            self._evict(current)
            logger.debug(f"Slot '{self.name}': cleared default {current}")
            return True

        self.register(resource)
        if current is not None and current != resource:
            self._evict(current)
        self._data["default"] = resource
        logger.debug(f"Slot '{self.name}': default {current} -> {resource}")
        return current is not None

    def remove(self, resource: Hashable) -> bool:
        """
        Remove a resource from the registered set.

        If it is the default, the default is cleared first.

        Returns:
            True if the resource was registered.
        """
        if self._data["default"] == resource:
            self._data["default"] = None
        removed = self._evict(resource)
        if removed:
            logger.debug(f"Slot '{self.name}': removed {resource}")
        return removed

    def current_default(self) -> Hashable | None:
        """The current default, or None."""
        return self._data["default"]

    def registered(self) -> tuple[Hashable, ...]:
        """All registered resources, in registration order."""
        return self._data["registered"]

    def is_registered(self, resource: Hashable) -> bool:
        return resource in self._data["registered"]

    def _evict(self, resource: Hashable) -> bool:
        registered = self._data["registered"]
        if resource not in registered:
            return False
        self._data["registered"] = tuple(r for r in registered if r != resource)
        return True
