"""
Permission resolution.

Answers "does principal P have permission X on resource R" by running the
wildcard algorithm once per role P holds:

    1. Exact entry (role, R, X) Granted or Denied decides.
    2. Otherwise read the partial wildcards (role, R, AnyPermission) and
       (role, AnyResource, X).
    3. If both partial wildcards are Undefined, (role, AnyResource,
       AnyPermission) decides; only Granted grants.
    4. If at least one partial wildcard is defined, the role grants unless
       one of them is Denied (Denied-overrides inside a role).

Across roles the combination is optimistic (Granted-overrides): the first
role that grants wins and a Denied verdict from another role never cancels
it. The asymmetry is deliberate; do not unify the two policies.

The Owner role grants everything.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass

from rulegate.access.roles import RoleRegistry
from rulegate.access.store import AccessDecisionStore
from rulegate.exceptions import InvalidQuery
from rulegate.types import (
    ANY_PERMISSION,
    ANY_RESOURCE,
    OWNER_ROLE,
    AccessDecision,
    PermissionId,
    Principal,
    ResourceScope,
    Role,
)

logger = logging.getLogger(__name__)

STEP_OWNER = "owner"
STEP_EXACT = "exact"
STEP_PARTIAL = "partial"
STEP_FULL = "full"


@dataclass(frozen=True)
class AccessResolution:
    """
    Outcome of a resolution, with the reason it came out that way.

    Attributes:
        granted: Whether access is granted.
        role: The role that granted access, if any.
        step: Which step of the algorithm granted it ("owner", "exact",
            "partial" or "full"), or None when denied.
        roles_evaluated: The roles that were checked, in order.
    """

    granted: bool
    role: Role | None = None
    step: str | None = None
    roles_evaluated: tuple[Role, ...] = ()

    def __bool__(self) -> bool:
        return self.granted


class PermissionResolver:
    """
    Resolves access for principals against the access decision table.

    Example:
        >>> resolver = PermissionResolver(store, roles)
        >>> store.put(MODERATOR, ResourceScope.of("feed:1"), DELETE_POST, AccessDecision.GRANTED)
        >>> roles.grant("0xalice", MODERATOR)
        >>> resolver.has_access("0xalice", "feed:1", DELETE_POST)
        True
    """

    def __init__(self, store: AccessDecisionStore, roles: RoleRegistry) -> None:
        self._store = store
        self._roles = roles

    def has_access(
        self,
        principal: Principal,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
    ) -> bool:
        """
        Check whether a principal holds a permission on a resource.

        Args:
            principal: The principal to check.
            scope: A concrete resource (raw id or ResourceScope).
            permission: A concrete permission id.

        Returns:
            True if any of the principal's roles grants access.

        Raises:
            InvalidQuery: If scope or permission is a wildcard.
        """
        return self.resolve(principal, scope, permission).granted

    def resolve(
        self,
        principal: Principal,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
    ) -> AccessResolution:
        """Like has_access, but report which role and step decided."""
        scope = _query_scope(scope)
        if not isinstance(permission, PermissionId) or permission.is_any:
            raise InvalidQuery("permission", permission)

        evaluated: list[Role] = []
        for role in self._roles.roles_of(principal):
            evaluated.append(role)
            step = self.role_grants(role, scope, permission)
            if step is not None:
                logger.debug(
                    f"Access granted to '{principal}' for {permission} on {scope} "
                    f"via role {role} ({step})"
                )
                return AccessResolution(True, role, step, tuple(evaluated))

        logger.debug(f"Access denied to '{principal}' for {permission} on {scope}")
        return AccessResolution(False, roles_evaluated=tuple(evaluated))

    def role_grants(
        self, role: Role, scope: ResourceScope, permission: PermissionId
    ) -> str | None:
        """
        Evaluate a single role.

        Returns:
            The step that granted access, or None if this role does not grant.
        """
        if role == OWNER_ROLE:
            return STEP_OWNER

        exact = self._store.get(role, scope, permission)
        if exact.is_defined:
            return STEP_EXACT if exact is AccessDecision.GRANTED else None

        any_permission = self._store.get(role, scope, ANY_PERMISSION)
        any_resource = self._store.get(role, ANY_RESOURCE, permission)

        if not any_permission.is_defined and not any_resource.is_defined:
            full = self._store.get(role, ANY_RESOURCE, ANY_PERMISSION)
            return STEP_FULL if full is AccessDecision.GRANTED else None

        if AccessDecision.DENIED in (any_permission, any_resource):
            return None
        return STEP_PARTIAL


def _query_scope(scope: ResourceScope | Hashable) -> ResourceScope:
    if scope is None:
        raise InvalidQuery("resource scope", scope)
    scope = ResourceScope.of(scope)
    if scope.is_any:
        raise InvalidQuery("resource scope", scope)
    return scope
