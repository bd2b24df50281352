"""
Rule module base classes for rulegate.

A rule module is externally supplied code attached to a primitive that
can veto (or react to) every state-changing action on it. Modules are
swappable at runtime; the primitive only knows the interface below.

Following the same convention as policy classes, each action a module
handles is a method named ``process_<action>``. The primitive dispatches
by name, and an action without a matching method is vetoed.
"""

from __future__ import annotations

import logging
from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from rulegate.exceptions import ConfigurationError

if TYPE_CHECKING:
    from rulegate.access.control import RoleBasedAccessControl
    from rulegate.types import Principal

logger = logging.getLogger(__name__)


class Discipline(Enum):
    """When a rule hook runs relative to the mutation it guards."""

    GATE = "gate"
    """Hook sees the pre-mutation state; the mutation runs only if it passes."""

    NOTIFY = "notify"
    """Mutation runs first; the hook sees the post-mutation state and may still veto."""


@dataclass(frozen=True)
class RuleRequest:
    """
    Everything a rule hook gets to know about an action.

    Attributes:
        action: Action name (the hook is ``process_<action>``).
        principal: Who is acting.
        primitive_id: The primitive the action targets.
        entity: The affected entity (post id, followed account, member...).
        params: Action-specific parameters.
        data: Opaque caller-supplied payload for the module.
        discipline: Whether the hook runs before or after the mutation.
        access: Access control of the primitive, for hooks that consult it.
    """

    action: str
    principal: Principal
    primitive_id: str
    entity: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    data: bytes = b""
    discipline: Discipline = Discipline.GATE
    access: RoleBasedAccessControl | None = None

    def get_param(self, key: str, default: Any = None) -> Any:
        """Get a parameter value with optional default."""
        return self.params.get(key, default)


class RuleModule(ABC):
    """
    Abstract base class for rule modules.

    Subclasses define one ``process_<action>`` method per action they
    accept. A hook returns True to let the action through; returning a
    falsy value or raising vetoes it and unwinds the whole action.

    Example:
        >>> class ClosedGroupRule(RuleModule):
        ...     def process_joining(self, request: RuleRequest) -> bool:
        ...         return request.principal in self.allowlist
        ...
        ...     def process_leaving(self, request: RuleRequest) -> bool:
        ...         return True
    """

    def __init__(self) -> None:
        self._configuration: bytes | None = None

    @property
    def name(self) -> str:
        """Human-readable name used in logs and veto errors."""
        return type(self).__name__

    @property
    def is_initialized(self) -> bool:
        return self._configuration is not None

    @property
    def configuration(self) -> bytes | None:
        """The configuration this module was initialized with."""
        return self._configuration

    def initialize(self, configuration: bytes = b"") -> None:
        """
        Configure the module when it is attached to a primitive.

        Re-initializing with identical bytes is a no-op; different bytes
        are refused. Subclasses that parse configuration should call
        ``super().initialize(configuration)`` first.

        Raises:
            ConfigurationError: If already initialized differently.
        """
        if self._configuration is not None:
            if self._configuration == configuration:
                return
            raise ConfigurationError(
                self.name, reason="module is already initialized with a different configuration"
            )
        self._configuration = bytes(configuration)
        logger.debug(f"Initialized rule module {self.name} ({len(configuration)} bytes)")

    def process(self, action: str, request: RuleRequest) -> bool:
        """
        Run the hook for an action.

        Args:
            action: The action name.
            request: The request passed to the hook.

        Returns:
            The hook's verdict; False when no hook exists for the action.
        """
        hook = getattr(self, f"process_{action}", None)
        if hook is None:
            logger.debug(f"{self.name} has no hook for '{action}', vetoing")
            return False
        return bool(hook(request))

    def supports(self, action: str) -> bool:
        """Check if the module defines a hook for an action."""
        return callable(getattr(self, f"process_{action}", None))

    @classmethod
    def get_supported_actions(cls) -> list[str]:
        """
        List the actions this module defines hooks for.

        Example:
            >>> ClosedGroupRule.get_supported_actions()
            ['joining', 'leaving']
        """
        actions = []
        for attr in dir(cls):
            if attr.startswith("process_") and callable(getattr(cls, attr)):
                actions.append(attr[len("process_"):])
        return sorted(actions)

    def __repr__(self) -> str:
        return f"<{self.name}>"
