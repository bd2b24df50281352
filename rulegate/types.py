"""
Core type definitions for rulegate.

This module defines the identifiers shared by every component: principals,
roles, resource scopes, permission ids, the tri-state access decision and
the id generator used to name primitives and the entities they hold.

Wildcards are explicit variants of ResourceScope and PermissionId rather
than reserved sentinel values, so a wildcard can never be confused with a
real identifier.
"""

from __future__ import annotations

import hashlib
import itertools
import threading
from collections.abc import Hashable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Principal = str
"""Opaque identity of an account. Used only as a lookup key."""

Role = int
"""Opaque numeric role identifier."""


def derive_id(name: str) -> int:
    """
    Derive a stable numeric identifier from a human-readable name.

    Every deployment computes the same value for the same name, so
    permission and role ids never need to be coordinated.

    Example:
        >>> derive_id("rulegate.permission.SetRules") == derive_id("rulegate.permission.SetRules")
        True
    """
    digest = hashlib.sha3_256(name.encode("utf-8")).digest()
    return int.from_bytes(digest, "big")


def is_zero_principal(principal: Principal | None) -> bool:
    """Check if a principal is the empty ("zero") identity."""
    return principal is None or principal == ""


OWNER_ROLE: Role = derive_id("rulegate.role.Owner")
"""The reserved Owner role. Never granted or revoked through generic paths."""


class AccessDecision(Enum):
    """Tri-state decision stored in the access table."""

    UNDEFINED = "undefined"
    """Never set. Must never be treated as Granted."""

    GRANTED = "granted"
    DENIED = "denied"

    @property
    def is_defined(self) -> bool:
        """True for Granted and Denied."""
        return self is not AccessDecision.UNDEFINED


@dataclass(frozen=True)
class ResourceScope:
    """
    The resource dimension of an access decision.

    Either a specific resource (``ResourceScope.of("feed:1")``) or the
    wildcard ``ANY_RESOURCE``. The wildcard is only valid as a stored key.

    Attributes:
        resource_id: The concrete resource id, or None for the wildcard.
    """

    resource_id: Hashable | None = None

    @classmethod
    def of(cls, resource: ResourceScope | Hashable) -> ResourceScope:
        """Wrap a raw resource id, passing existing scopes through."""
        if isinstance(resource, ResourceScope):
            return resource
        if resource is None:
            raise ValueError("resource id must not be None; use ANY_RESOURCE for the wildcard")
        return cls(resource_id=resource)

    @property
    def is_any(self) -> bool:
        """True if this is the wildcard scope."""
        return self.resource_id is None

    def __str__(self) -> str:
        return "*" if self.is_any else str(self.resource_id)


ANY_RESOURCE = ResourceScope()


@dataclass(frozen=True)
class PermissionId:
    """
    The permission dimension of an access decision.

    Permission ids are derived from a stable action name so independent
    deployments agree on them. ``ANY_PERMISSION`` is the wildcard variant.

    Attributes:
        value: The derived numeric id, or None for the wildcard.
        label: The name the id was derived from (display only).

    Example:
        >>> p = PermissionId.named("rulegate.permission.SetRules")
        >>> p == PermissionId.named("rulegate.permission.SetRules")
        True
    """

    value: int | None = None
    label: str | None = field(default=None, compare=False)

    @classmethod
    def named(cls, name: str) -> PermissionId:
        """Derive a permission id from its action name."""
        return cls(value=derive_id(name), label=name)

    @property
    def is_any(self) -> bool:
        """True if this is the wildcard permission."""
        return self.value is None

    def __str__(self) -> str:
        if self.is_any:
            return "*"
        return self.label or hex(self.value)


ANY_PERMISSION = PermissionId()


class Permissions:
    """Well-known permission ids used by the bundled primitives."""

    SET_RULES = PermissionId.named("rulegate.permission.SetRules")
    SET_ACCESS_CONTROL = PermissionId.named("rulegate.permission.SetAccessControl")
    SET_EXTRA_DATA = PermissionId.named("rulegate.permission.SetExtraData")
    SET_METADATA = PermissionId.named("rulegate.permission.SetMetadata")
    DELETE_POST = PermissionId.named("rulegate.permission.DeletePost")
    ADD_MEMBER = PermissionId.named("rulegate.permission.AddMember")
    REMOVE_MEMBER = PermissionId.named("rulegate.permission.RemoveMember")
    SET_DEFAULT = PermissionId.named("rulegate.permission.SetDefault")
    REGISTER_RESOURCE = PermissionId.named("rulegate.permission.RegisterResource")


class IdGenerator:
    """
    Namespaced monotonic id generator.

    Ids look like ``"<namespace>:<kind>:<n>"``. Counters are per kind and
    never reused, so ids stay unique for the lifetime of the generator.
    Inject one generator per deployment; two deployments with different
    namespaces never collide.

    Example:
        >>> ids = IdGenerator("test")
        >>> ids.next_id("feed")
        'test:feed:1'
        >>> ids.next_id("feed")
        'test:feed:2'
    """

    def __init__(self, namespace: str = "rulegate") -> None:
        if not namespace:
            raise ValueError("namespace must not be empty")
        self.namespace = namespace
        self._counters: dict[str, itertools.count[int]] = {}
        self._lock = threading.Lock()

    def next_id(self, kind: str) -> str:
        """Return the next unique id for the given kind."""
        with self._lock:
            counter = self._counters.setdefault(kind, itertools.count(1))
            return f"{self.namespace}:{kind}:{next(counter)}"


def describe_key(role: Role, scope: ResourceScope, permission: PermissionId) -> dict[str, Any]:
    """Render an access table key for events and log lines."""
    return {"role": role, "scope": str(scope), "permission": str(permission)}
