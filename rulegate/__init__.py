"""
rulegate: authorization and extensibility core for social-protocol primitives.

Feeds, follow graphs, groups and apps each guard their state behind a
role-based access check and a swappable rule module that can veto every
state-changing action. rulegate provides that shared core:

- Role-based access control with layered wildcards
- Rule dispatch under the Gate or Notify discipline, all-or-nothing
- Default slots and opaque extra data for primitives

Basic Usage:
    >>> from rulegate import Core, CoreConfig, CallbackRule
    >>>
    >>> core = Core(CoreConfig.default(owner="0xowner"))
    >>> graph = core.create_graph()
    >>>
    >>> # Bob only accepts followers that are not on his blocklist
    >>> graph.set_follow_rules(
    ...     "0xbob", CallbackRule(lambda action, req: req.principal not in blocked)
    ... )
    >>> graph.follow("0xalice", "0xbob")
"""

__version__ = "0.1.0"

from rulegate.access import (
    AccessDecisionStore,
    AccessResolution,
    PermissionResolver,
    RoleBasedAccessControl,
    RoleRegistry,
)
from rulegate.config import CoreConfig
from rulegate.core import Core
from rulegate.events import (
    ChangeEvent,
    EventBus,
    EventHook,
    EventType,
    InMemoryEventHook,
    LoggingEventHook,
)
from rulegate.exceptions import (
    AccessDenied,
    AccessEntryInvalid,
    ConfigurationError,
    DefaultSlotInvalid,
    InvalidOperation,
    InvalidQuery,
    MissingExtensionModule,
    ReentrancyError,
    RoleOperationInvalid,
    RuleRejected,
    RulegateError,
)
from rulegate.extra_data import ExtraDataStore, extra_data_key
from rulegate.primitives import App, Feed, Graph, Group, Primitive
from rulegate.rules import (
    AccessGatedRule,
    ActionSpec,
    AllowAllRule,
    CallbackRule,
    CombinedRule,
    DenyAllRule,
    Discipline,
    MembershipGatedRule,
    RuleDispatcher,
    RuleModule,
    RuleRequest,
)
from rulegate.slots import DefaultSlotRegistry
from rulegate.state import Namespace, StateContainer
from rulegate.types import (
    ANY_PERMISSION,
    ANY_RESOURCE,
    OWNER_ROLE,
    AccessDecision,
    IdGenerator,
    PermissionId,
    Permissions,
    ResourceScope,
    derive_id,
)

__all__ = [
    # Version
    "__version__",
    # Main class
    "Core",
    "CoreConfig",
    # Identifiers
    "ANY_PERMISSION",
    "ANY_RESOURCE",
    "OWNER_ROLE",
    "AccessDecision",
    "IdGenerator",
    "PermissionId",
    "Permissions",
    "ResourceScope",
    "derive_id",
    # State and events
    "StateContainer",
    "Namespace",
    "ChangeEvent",
    "EventBus",
    "EventHook",
    "EventType",
    "InMemoryEventHook",
    "LoggingEventHook",
    # Access control
    "AccessDecisionStore",
    "AccessResolution",
    "PermissionResolver",
    "RoleBasedAccessControl",
    "RoleRegistry",
    # Rules
    "ActionSpec",
    "Discipline",
    "RuleDispatcher",
    "RuleModule",
    "RuleRequest",
    "AccessGatedRule",
    "AllowAllRule",
    "CallbackRule",
    "CombinedRule",
    "DenyAllRule",
    "MembershipGatedRule",
    # Utilities
    "DefaultSlotRegistry",
    "ExtraDataStore",
    "extra_data_key",
    # Primitives
    "App",
    "Feed",
    "Graph",
    "Group",
    "Primitive",
    # Exceptions
    "RulegateError",
    "AccessDenied",
    "InvalidQuery",
    "RoleOperationInvalid",
    "AccessEntryInvalid",
    "RuleRejected",
    "MissingExtensionModule",
    "DefaultSlotInvalid",
    "ReentrancyError",
    "ConfigurationError",
    "InvalidOperation",
]
