"""
Access decision table.

Maps (role, resource scope, permission) to an AccessDecision. This is a
raw table: it does not resolve wildcards and it accepts wildcard variants
as keys. Resolution lives in rulegate.access.resolver.
"""

from __future__ import annotations

import logging

from rulegate.state import StateContainer
from rulegate.types import AccessDecision, PermissionId, ResourceScope, Role

logger = logging.getLogger(__name__)

AccessKey = tuple[Role, ResourceScope, PermissionId]


class AccessDecisionStore:
    """
    Three-key table of tri-state access decisions.

    Only Granted and Denied entries are stored; an absent key reads as
    Undefined, and writing Undefined deletes the entry.

    Example:
        >>> store = AccessDecisionStore(StateContainer())
        >>> store.get(7, ResourceScope.of("feed:1"), SET_RULES)
        <AccessDecision.UNDEFINED: 'undefined'>
    """

    def __init__(self, state: StateContainer, namespace: str = "access.decisions") -> None:
        self._state = state
        self._entries = state.namespace(namespace)

    def get(self, role: Role, scope: ResourceScope, permission: PermissionId) -> AccessDecision:
        """Read the stored decision for an exact key (wildcards allowed)."""
        return self._entries.get((role, scope, permission), AccessDecision.UNDEFINED)

    def put(
        self,
        role: Role,
        scope: ResourceScope,
        permission: PermissionId,
        decision: AccessDecision,
    ) -> AccessDecision:
        """
        Write a decision and return the one it replaced.

        Callers are responsible for running this inside an atomic block.
        """
        key = (role, scope, permission)
        previous = self._entries.get(key, AccessDecision.UNDEFINED)
        if decision is AccessDecision.UNDEFINED:
            self._entries.pop(key, None)
        else:
            self._entries[key] = decision
        logger.debug(
            f"Access entry role={role} scope={scope} permission={permission}: "
            f"{previous.value} -> {decision.value}"
        )
        return previous

    def entries(self, role: Role | None = None) -> dict[AccessKey, AccessDecision]:
        """List explicit entries, optionally for one role."""
        if role is None:
            return dict(self._entries)
        return {key: value for key, value in self._entries.items() if key[0] == role}

    def __len__(self) -> int:
        return len(self._entries)
