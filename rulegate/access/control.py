"""
Role-based access control facade.

RoleBasedAccessControl ties the decision table, the role registry and the
resolver together behind the interface primitives consume. Every
administrative operation takes the acting principal (``caller``) and is
reserved to the owner. Every mutation runs in one atomic block and emits a
change event on commit.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable

from rulegate.access.resolver import AccessResolution, PermissionResolver
from rulegate.access.roles import RoleRegistry
from rulegate.access.store import AccessDecisionStore, AccessKey
from rulegate.events import ChangeEvent, EventType
from rulegate.exceptions import AccessDenied, AccessEntryInvalid, RoleOperationInvalid
from rulegate.state import StateContainer
from rulegate.types import (
    OWNER_ROLE,
    AccessDecision,
    PermissionId,
    Principal,
    ResourceScope,
    Role,
    describe_key,
)

logger = logging.getLogger(__name__)


class RoleBasedAccessControl:
    """
    Owner-administered role-based access control.

    Example:
        >>> state = StateContainer()
        >>> access = RoleBasedAccessControl(state, owner="0xowner")
        >>> access.grant_role("0xowner", "0xalice", MODERATOR)
        >>> access.set_access(
        ...     "0xowner", MODERATOR, "feed:1", Permissions.DELETE_POST, AccessDecision.GRANTED
        ... )
        >>> access.has_access("0xalice", "feed:1", Permissions.DELETE_POST)
        True

    Attributes:
        access_id: Identifier used as the source of emitted events.
    """

    def __init__(
        self,
        state: StateContainer,
        owner: Principal,
        access_id: str = "access",
    ) -> None:
        """
        Initialize access control for a deployment.

        Args:
            state: State container shared with the primitives.
            owner: The initial owner.
            access_id: Identifier for this instance; also prefixes its
                storage namespaces so several instances can share a state.
        """
        self.access_id = access_id
        self._state = state
        self.store = AccessDecisionStore(state, f"{access_id}.decisions")
        self.roles = RoleRegistry(state, owner, f"{access_id}.roles")
        self.resolver = PermissionResolver(self.store, self.roles)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def owner(self) -> Principal:
        """The current owner."""
        return self.roles.owner

    def has_access(
        self,
        principal: Principal,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
    ) -> bool:
        """Resolved access check; see PermissionResolver.has_access."""
        return self.resolver.has_access(principal, scope, permission)

    def resolve(
        self,
        principal: Principal,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
    ) -> AccessResolution:
        """Resolved access check with the deciding role and step."""
        return self.resolver.resolve(principal, scope, permission)

    def require_access(
        self,
        principal: Principal,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
    ) -> None:
        """
        Raise unless the principal has access.

        Raises:
            AccessDenied: If has_access is False.
            InvalidQuery: If scope or permission is a wildcard.
        """
        if not self.resolver.has_access(principal, scope, permission):
            raise AccessDenied(principal, ResourceScope.of(scope), permission)

    def has_role(self, principal: Principal, role: Role) -> bool:
        """Check if a principal holds a role."""
        return self.roles.has_role(principal, role)

    def get_roles(self, principal: Principal) -> tuple[Role, ...]:
        """Return the roles held by a principal."""
        return self.roles.roles_of(principal)

    def get_access(
        self,
        role: Role,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
    ) -> AccessDecision:
        """
        Raw table read for an exact key.

        This is not a resolved decision: it ignores wildcards and roles.
        Use has_access to decide whether someone may act.
        """
        return self.store.get(role, ResourceScope.of(scope), permission)

    def entries(self, role: Role | None = None) -> dict[AccessKey, AccessDecision]:
        """List explicit table entries."""
        return self.store.entries(role)

    # ------------------------------------------------------------------
    # Administration (owner only)
    # ------------------------------------------------------------------

    def grant_role(self, caller: Principal, account: Principal, role: Role) -> None:
        """
        Assign a role to an account.

        Raises:
            RoleOperationInvalid: Caller is not the owner, account is zero,
                role is already held, or role is the Owner role.
        """
        with self._state.atomic():
            self._require_owner(caller, "grant_role")
            self.roles.grant(account, role)
            self._emit(EventType.ROLE_GRANTED, {"account": account, "role": role})
        logger.info(f"Role {role} granted to '{account}'")

    def revoke_role(self, caller: Principal, account: Principal, role: Role) -> None:
        """
        Remove a role from an account.

        Raises:
            RoleOperationInvalid: Caller is not the owner, account is zero,
                role is not held, or role is the Owner role.
        """
        with self._state.atomic():
            self._require_owner(caller, "revoke_role")
            self.roles.revoke(account, role)
            self._emit(EventType.ROLE_REVOKED, {"account": account, "role": role})
        logger.info(f"Role {role} revoked from '{account}'")

    def transfer_ownership(self, caller: Principal, new_owner: Principal) -> None:
        """
        Hand the Owner role to another account in one step.

        Raises:
            RoleOperationInvalid: Caller is not the owner, or new_owner is
                zero or already the owner.
        """
        with self._state.atomic():
            self._require_owner(caller, "transfer_ownership")
            previous = self.roles.transfer_ownership(new_owner)
            self._emit(
                EventType.OWNERSHIP_TRANSFERRED,
                {"previous_owner": previous, "new_owner": new_owner},
            )

    def set_access(
        self,
        caller: Principal,
        role: Role,
        scope: ResourceScope | Hashable,
        permission: PermissionId,
        decision: AccessDecision,
    ) -> None:
        """
        Write an access table entry.

        Wildcards (ANY_RESOURCE, ANY_PERMISSION) are valid here. Emits
        ACCESS_ADDED when the previous decision was Undefined,
        ACCESS_REMOVED when the new one is Undefined, and ACCESS_UPDATED
        otherwise.

        Raises:
            RoleOperationInvalid: Caller is not the owner, or role is the
                Owner role.
            AccessEntryInvalid: Writing Undefined over Undefined.
        """
        scope = ResourceScope.of(scope)
        with self._state.atomic():
            self._require_owner(caller, "set_access")
            if role == OWNER_ROLE:
                raise RoleOperationInvalid(
                    "set_access", "the Owner role cannot have access entries", role=role
                )
            previous = self.store.get(role, scope, permission)
            if not previous.is_defined and not decision.is_defined:
                raise AccessEntryInvalid(role, scope, permission, "entry is already undefined")

            self.store.put(role, scope, permission, decision)

            if not previous.is_defined:
                event_type = EventType.ACCESS_ADDED
            elif not decision.is_defined:
                event_type = EventType.ACCESS_REMOVED
            else:
                event_type = EventType.ACCESS_UPDATED

            payload = describe_key(role, scope, permission)
            payload["scope_id"] = scope.resource_id
            payload["permission_id"] = permission.value
            if event_type is not EventType.ACCESS_REMOVED:
                payload["granted"] = decision is AccessDecision.GRANTED
            self._emit(event_type, payload)

        logger.info(
            f"Access {event_type.value}: role={role} scope={scope} "
            f"permission={permission} decision={decision.value}"
        )

    # ------------------------------------------------------------------

    def _require_owner(self, caller: Principal, operation: str) -> None:
        if not self.roles.has_role(caller, OWNER_ROLE):
            logger.warning(f"Non-owner '{caller}' attempted '{operation}'")
            raise RoleOperationInvalid(operation, "caller is not the owner", caller)

    def _emit(self, event_type: EventType, payload: dict) -> None:
        self._state.emit(ChangeEvent(event_type, self.access_id, payload))
