"""
Access control for rulegate.

- AccessDecisionStore: raw (role, scope, permission) -> decision table
- RoleRegistry: role assignments with an un-forgeable Owner role
- PermissionResolver: wildcard resolution of "may P do X on R"
- RoleBasedAccessControl: owner-administered facade over the three
"""

from rulegate.access.control import RoleBasedAccessControl
from rulegate.access.resolver import AccessResolution, PermissionResolver
from rulegate.access.roles import RoleRegistry
from rulegate.access.store import AccessDecisionStore

__all__ = [
    "AccessDecisionStore",
    "AccessResolution",
    "PermissionResolver",
    "RoleBasedAccessControl",
    "RoleRegistry",
]
