"""
Change notifications for rulegate.

Every committed state change produces a ChangeEvent that is delivered to
the hooks registered on an EventBus. Indexers, audit trails and tests
consume these without the core knowing anything about them.

Quick Start:
    >>> from rulegate.events import EventBus, InMemoryEventHook, EventType
    >>>
    >>> bus = EventBus()
    >>> recorder = InMemoryEventHook()
    >>> bus.add_hook(recorder)
    >>>
    >>> core = Core(CoreConfig.default(owner="0xowner"), events=bus)
    >>> core.access.grant_role("0xowner", "0xalice", MODERATOR)
    >>> recorder.of_type(EventType.ROLE_GRANTED)[0].payload["account"]
    '0xalice'

Events emitted inside an atomic operation are only published once the
outermost operation commits. A rolled-back operation publishes nothing.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class EventType(Enum):
    """Kinds of change notifications."""

    # Access control
    ROLE_GRANTED = "role_granted"
    ROLE_REVOKED = "role_revoked"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    ACCESS_ADDED = "access_added"
    ACCESS_UPDATED = "access_updated"
    ACCESS_REMOVED = "access_removed"

    # Primitive administration
    RULE_MODULE_SET = "rule_module_set"
    RULE_MODULE_CLEARED = "rule_module_cleared"
    SCOPED_RULE_MODULE_SET = "scoped_rule_module_set"
    SCOPED_RULE_MODULE_CLEARED = "scoped_rule_module_cleared"
    ACCESS_CONTROL_CHANGED = "access_control_changed"
    EXTRA_DATA_ADDED = "extra_data_added"
    EXTRA_DATA_UPDATED = "extra_data_updated"
    EXTRA_DATA_REMOVED = "extra_data_removed"

    # Default slots
    DEFAULT_ADDED = "default_added"
    DEFAULT_UPDATED = "default_updated"
    DEFAULT_REMOVED = "default_removed"
    RESOURCE_REGISTERED = "resource_registered"
    RESOURCE_REMOVED = "resource_removed"

    # Feeds
    POST_CREATED = "post_created"
    POST_EDITED = "post_edited"
    POST_DELETED = "post_deleted"

    # Graphs
    FOLLOWED = "followed"
    UNFOLLOWED = "unfollowed"

    # Groups
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"


@dataclass
class ChangeEvent:
    """
    A single committed state change.

    Attributes:
        event_type: What happened.
        source: Id of the component that emitted the event.
        payload: Event-specific fields (keys, accounts, decisions...).
        sequence: Position in the bus's publication order, set on publish.
        timestamp: When the event was created (UTC).
    """

    event_type: EventType
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    sequence: int = 0
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "source": self.source,
            "payload": self.payload,
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
        }


@runtime_checkable
class EventHook(Protocol):
    """
    Protocol for change-notification consumers.

    Example:
        >>> class IndexerHook:
        ...     def on_event(self, event: ChangeEvent) -> None:
        ...         index.write(event.to_dict())
        >>>
        >>> bus.add_hook(IndexerHook())
    """

    def on_event(self, event: ChangeEvent) -> None:
        """
        Receive a committed change.

        Args:
            event: The published event.
        """
        ...


class LoggingEventHook:
    """
    Hook that logs every event (for development and debugging).

    Example:
        >>> import logging
        >>> logging.basicConfig(level=logging.DEBUG)
        >>> bus.add_hook(LoggingEventHook())
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG):
        """
        Initialize the logging hook.

        Args:
            logger: Logger instance to use. Defaults to "rulegate.events.log".
            level: Logging level for event messages.
        """
        self.logger = logger or logging.getLogger("rulegate.events.log")
        self.level = level

    def on_event(self, event: ChangeEvent) -> None:
        """Log the event."""
        self.logger.log(
            self.level,
            f"EVENT #{event.sequence} {event.event_type.value} source={event.source} "
            f"payload={event.payload}",
        )


class InMemoryEventHook:
    """
    Records events in memory, mainly for tests.

    Example:
        >>> recorder = InMemoryEventHook()
        >>> bus.add_hook(recorder)
        >>> ...
        >>> [e.event_type for e in recorder.events]
        [<EventType.ROLE_GRANTED: 'role_granted'>]
    """

    def __init__(self):
        self.events: list[ChangeEvent] = []

    def on_event(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[ChangeEvent]:
        """Return recorded events of one type, in publication order."""
        return [e for e in self.events if e.event_type is event_type]

    def types(self) -> list[EventType]:
        """Return the types of all recorded events, in publication order."""
        return [e.event_type for e in self.events]

    def reset(self) -> None:
        """Forget all recorded events."""
        self.events.clear()


class EventBus:
    """
    Delivers committed events to registered hooks.

    A hook that raises is logged and skipped; it never affects state that
    has already been committed or the delivery to other hooks.
    """

    def __init__(self):
        self._hooks: list[EventHook] = []
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def add_hook(self, hook: EventHook) -> None:
        """Register a hook."""
        self._hooks.append(hook)

    def remove_hook(self, hook: EventHook) -> bool:
        """
        Remove a hook.

        Returns:
            True if the hook was removed, False if not found.
        """
        try:
            self._hooks.remove(hook)
            return True
        except ValueError:
            return False

    def clear_hooks(self) -> None:
        """Remove all registered hooks."""
        self._hooks.clear()

    @property
    def hooks(self) -> list[EventHook]:
        """Get a copy of the registered hooks."""
        return list(self._hooks)

    def publish(self, event: ChangeEvent) -> None:
        """Stamp the event with the next sequence number and deliver it."""
        with self._lock:
            event.sequence = next(self._sequence)
        for hook in list(self._hooks):
            try:
                hook.on_event(event)
            except Exception as e:
                logger.warning(
                    f"Event hook {type(hook).__name__} failed on "
                    f"{event.event_type.value}: {e}"
                )
