"""
Core wiring for rulegate.

The Core owns everything one deployment shares: the state container, the
event bus, the id generator and the root access control. Primitives are
created through it so they all live in the same state and roll back
together.
"""

from __future__ import annotations

import logging

from rulegate.access.control import RoleBasedAccessControl
from rulegate.config import CoreConfig
from rulegate.events import EventBus, LoggingEventHook
from rulegate.exceptions import ConfigurationError
from rulegate.primitives.app import App
from rulegate.primitives.base import Primitive
from rulegate.primitives.feed import Feed
from rulegate.primitives.graph import Graph
from rulegate.primitives.group import Group
from rulegate.rules.base import RuleModule
from rulegate.state import StateContainer
from rulegate.types import IdGenerator

logger = logging.getLogger(__name__)


class Core:
    """
    Main entry point for a rulegate deployment.

    Example:
        >>> from rulegate import Core, CoreConfig, Permissions, AccessDecision
        >>>
        >>> core = Core(CoreConfig.default(owner="0xowner"))
        >>> feed = core.create_feed()
        >>>
        >>> core.access.grant_role("0xowner", "0xmod", MODERATOR)
        >>> core.access.set_access(
        ...     "0xowner", MODERATOR, feed.id, Permissions.DELETE_POST, AccessDecision.GRANTED
        ... )
        >>> post_id = feed.create_post("0xalice", "ipfs://hello")
        >>> feed.delete_post("0xmod", post_id)

    Attributes:
        config: The configuration the core was built from.
        events: Event bus receiving committed change notifications.
        state: State container shared by every component.
        ids: Id generator for primitives and their entities.
        access: The root access control, owned by ``config.owner``.
    """

    def __init__(
        self,
        config: CoreConfig,
        events: EventBus | None = None,
        state: StateContainer | None = None,
        ids: IdGenerator | None = None,
    ) -> None:
        """
        Wire a deployment.

        Raises:
            ConfigurationError: ``events`` and ``state`` are both given but
                the state publishes to a different bus.
        """
        if events is not None and state is not None and state.event_bus is not events:
            raise ConfigurationError(
                "events",
                reason="the state container publishes to a different event bus",
            )
        self.config = config
        if state is not None:
            self.events = state.event_bus
        else:
            self.events = events if events is not None else EventBus()
        self.state = state if state is not None else StateContainer(self.events)
        self.ids = ids or IdGenerator(config.id_namespace)

        if config.log_events:
            self.events.add_hook(LoggingEventHook(level=config.event_log_level))

        self.access = RoleBasedAccessControl(
            self.state, config.owner, access_id=self.ids.next_id("access")
        )
        logger.info(
            f"Core initialized (namespace={config.id_namespace}, owner={config.owner}, "
            f"reentrancy_guard={config.reentrancy_guard})"
        )

    def create_access_control(self, owner: str) -> RoleBasedAccessControl:
        """Create an additional access control living in this core's state."""
        return RoleBasedAccessControl(self.state, owner, access_id=self.ids.next_id("access"))

    def create_feed(
        self,
        rule_module: RuleModule | None = None,
        rule_configuration: bytes = b"",
        access: RoleBasedAccessControl | None = None,
    ) -> Feed:
        """Create a feed."""
        return self._create(Feed, rule_module, rule_configuration, access)

    def create_graph(
        self,
        rule_module: RuleModule | None = None,
        rule_configuration: bytes = b"",
        access: RoleBasedAccessControl | None = None,
    ) -> Graph:
        """Create a follow graph."""
        return self._create(Graph, rule_module, rule_configuration, access)

    def create_group(
        self,
        rule_module: RuleModule | None = None,
        rule_configuration: bytes = b"",
        access: RoleBasedAccessControl | None = None,
    ) -> Group:
        """Create a group."""
        return self._create(Group, rule_module, rule_configuration, access)

    def create_app(
        self,
        rule_module: RuleModule | None = None,
        rule_configuration: bytes = b"",
        access: RoleBasedAccessControl | None = None,
    ) -> App:
        """Create an app."""
        return self._create(App, rule_module, rule_configuration, access)

    def _create(self, cls, rule_module, rule_configuration, access):
        primitive: Primitive = cls(
            self.state,
            access or self.access,
            self.ids,
            rule_module=rule_module,
            rule_configuration=rule_configuration,
            reentrancy_guard=self.config.reentrancy_guard,
        )
        logger.info(f"Created {primitive.kind} {primitive.id}")
        return primitive
