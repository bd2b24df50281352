"""
Explicitly owned state for rulegate components.

A StateContainer holds the storage of every component in a deployment
(access tables, role assignments, posts, follows...) in named namespaces.
It is passed to each component at construction; there is no module-level
or global storage.

All writes happen inside ``atomic()``. An atomic block either commits in
full or, when any exception escapes it, undoes every write made since it
was entered. Change events raised inside the block are held back until the
outermost block commits.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

from rulegate.events import ChangeEvent, EventBus

logger = logging.getLogger(__name__)

_MISSING = object()


class Namespace(MutableMapping):
    """
    One component's storage: a mapping whose writes are journaled.

    Only assignments and deletions of top-level keys are recorded, so
    stored values must be treated as immutable: replace a value to change
    it, never mutate it in place. A key brought back by a rollback moves
    to the end of iteration order.
    """

    def __init__(self, container: StateContainer, name: str) -> None:
        self.name = name
        self._container = container
        self._entries: dict[Any, Any] = {}

    def __getitem__(self, key: Any) -> Any:
        return self._entries[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        with self._container._lock:
            self._container._record(self, key)
            self._entries[key] = value

    def __delitem__(self, key: Any) -> None:
        with self._container._lock:
            if key not in self._entries:
                raise KeyError(key)
            self._container._record(self, key)
            del self._entries[key]

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Any]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Namespace({self.name!r}, {self._entries!r})"


class StateContainer:
    """
    Namespaced, transactional storage shared by the components of a deployment.

    Features:
        - Stable per-component namespaces
        - Serialized writers through a re-entrant lock
        - Nested atomic blocks with independent rollback
        - Undo journal, so a block costs only what it writes
        - Event buffering until the outermost commit

    Example:
        >>> state = StateContainer()
        >>> counters = state.namespace("counters")
        >>> with state.atomic():
        ...     counters["posts"] = 1
        >>> try:
        ...     with state.atomic():
        ...         counters["posts"] = 2
        ...         raise RuntimeError("veto")
        ... except RuntimeError:
        ...     pass
        >>> counters["posts"]
        1

    Thread Safety:
        Atomic blocks are serialized via an internal re-entrant lock. A
        thread entering ``atomic()`` waits until no other thread is inside
        one. Writes made outside an atomic block also take the lock.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        """
        Initialize the container.

        Args:
            event_bus: Bus receiving committed events. A private bus is
                created when omitted.
        """
        self.event_bus = event_bus or EventBus()
        self._namespaces: dict[str, Namespace] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._journal: list[tuple[Namespace, Any, Any]] = []
        self._pending: list[ChangeEvent] = []

    def namespace(self, name: str) -> Namespace:
        """
        Get (creating if needed) the storage of a component.

        The returned namespace is the same object for the container's lifetime.
        """
        with self._lock:
            ns = self._namespaces.get(name)
            if ns is None:
                ns = Namespace(self, name)
                self._namespaces[name] = ns
            return ns

    @property
    def in_transaction(self) -> bool:
        """True while an atomic block is active."""
        return self._depth > 0

    @contextmanager
    def atomic(self) -> Iterator[StateContainer]:
        """
        Run a block as a single all-or-nothing operation.

        Raises:
            Whatever the block raises, after its writes have been undone.
        """
        with self._lock:
            journal_mark = len(self._journal)
            pending_mark = len(self._pending)
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._undo(journal_mark)
                del self._pending[pending_mark:]
                logger.debug(f"Rolled back atomic block at depth {self._depth}")
                raise
            finally:
                self._depth -= 1

            if self._depth == 0:
                self._journal.clear()
                self._flush()

    def emit(self, event: ChangeEvent) -> None:
        """
        Queue an event for publication.

        Inside an atomic block the event waits for the outermost commit;
        outside one it is published immediately.
        """
        with self._lock:
            if self._depth > 0:
                self._pending.append(event)
                return
        self.event_bus.publish(event)

    def _record(self, ns: Namespace, key: Any) -> None:
        if self._depth > 0:
            self._journal.append((ns, key, ns._entries.get(key, _MISSING)))

    def _undo(self, mark: int) -> None:
        for ns, key, previous in reversed(self._journal[mark:]):
            if previous is _MISSING:
                ns._entries.pop(key, None)
            else:
                ns._entries[key] = previous
        del self._journal[mark:]

    def _flush(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            self.event_bus.publish(event)
