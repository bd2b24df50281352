"""
Role assignments.

The RoleRegistry keeps, per principal, the unordered set of roles it
holds. The Owner role is special: it is assigned once at construction and
only moves through transfer_ownership. Generic grant/revoke refuse it.
"""

from __future__ import annotations

import logging

from rulegate.exceptions import RoleOperationInvalid
from rulegate.state import StateContainer
from rulegate.types import OWNER_ROLE, Principal, Role, is_zero_principal

logger = logging.getLogger(__name__)


class RoleRegistry:
    """
    Principal -> roles assignment table with an un-forgeable Owner role.

    Role lists have no duplicates and no meaningful order; revoking swaps
    the last role into the removed slot and truncates.

    Example:
        >>> roles = RoleRegistry(StateContainer(), owner="0xowner")
        >>> roles.grant("0xalice", MODERATOR)
        >>> roles.has_role("0xalice", MODERATOR)
        True
        >>> roles.grant("0xalice", OWNER_ROLE)
        Traceback (most recent call last):
        RoleOperationInvalid: Role operation 'grant_role' rejected: ...
    """

    def __init__(
        self,
        state: StateContainer,
        owner: Principal,
        namespace: str = "access.roles",
    ) -> None:
        """
        Initialize the registry and assign the Owner role.

        Args:
            state: State container holding the assignments.
            owner: The initial owner.
            namespace: Namespace of the assignment table.

        Raises:
            RoleOperationInvalid: If owner is the zero principal.
        """
        if is_zero_principal(owner):
            raise RoleOperationInvalid("initialize", "owner must not be the zero principal")
        self._state = state
        self._data = state.namespace(namespace)
        self._assignments = state.namespace(f"{namespace}.assignments")
        if "owner" not in self._data:
            with state.atomic():
                self._assignments[owner] = (OWNER_ROLE,)
                self._data["owner"] = owner

    @property
    def owner(self) -> Principal:
        """The principal currently holding the Owner role."""
        return self._data["owner"]

    def roles_of(self, principal: Principal) -> tuple[Role, ...]:
        """Return the roles held by a principal (possibly empty)."""
        return self._assignments.get(principal, ())

    def has_role(self, principal: Principal, role: Role) -> bool:
        """Check if a principal holds a role."""
        return role in self._assignments.get(principal, ())

    def grant(self, principal: Principal, role: Role) -> None:
        """
        Assign a role.

        Raises:
            RoleOperationInvalid: Zero principal, Owner role, or already held.
        """
        self._check_generic("grant_role", principal, role)
        held = self._assignments.get(principal, ())
        if role in held:
            raise RoleOperationInvalid("grant_role", "role already granted", principal, role)
        self._assignments[principal] = held + (role,)
        logger.debug(f"Granted role {role} to '{principal}'")

    def revoke(self, principal: Principal, role: Role) -> None:
        """
        Remove a role.

        Raises:
            RoleOperationInvalid: Zero principal, Owner role, or not held.
        """
        self._check_generic("revoke_role", principal, role)
        self._remove(principal, role, "revoke_role")
        logger.debug(f"Revoked role {role} from '{principal}'")

    def transfer_ownership(self, new_owner: Principal) -> Principal:
        """
        Move the Owner role to a new principal in one step.

        Returns:
            The previous owner.

        Raises:
            RoleOperationInvalid: Zero principal or already the owner.
        """
        if is_zero_principal(new_owner):
            raise RoleOperationInvalid(
                "transfer_ownership", "new owner must not be the zero principal", new_owner
            )
        previous = self.owner
        if new_owner == previous:
            raise RoleOperationInvalid(
                "transfer_ownership", "account is already the owner", new_owner
            )
        self._remove(previous, OWNER_ROLE, "transfer_ownership")
        self._assignments[new_owner] = self._assignments.get(new_owner, ()) + (OWNER_ROLE,)
        self._data["owner"] = new_owner
        logger.info(f"Ownership transferred from '{previous}' to '{new_owner}'")
        return previous

    def _check_generic(self, operation: str, principal: Principal, role: Role) -> None:
        if is_zero_principal(principal):
            raise RoleOperationInvalid(operation, "account must not be the zero principal")
        if role == OWNER_ROLE:
            raise RoleOperationInvalid(
                operation, "the Owner role cannot be managed this way", principal, role
            )

    def _remove(self, principal: Principal, role: Role, operation: str) -> None:
        held = list(self._assignments.get(principal, ()))
        try:
            index = held.index(role)
        except ValueError:
            raise RoleOperationInvalid(operation, "role not granted", principal, role) from None
        held[index] = held[-1]
        held.pop()
        if held:
            self._assignments[principal] = tuple(held)
        else:
            del self._assignments[principal]
