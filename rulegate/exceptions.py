"""
Custom exceptions for rulegate.

This module defines the exception hierarchy for the core, providing
meaningful error types for authorization failures, misuse of wildcard
identifiers, role administration errors and vetoes raised by extension
modules.

Every error aborts the enclosing atomic operation. Nothing here is
retried automatically; retry, if any, is a caller policy.
"""

from __future__ import annotations

from typing import Any


class RulegateError(Exception):
    """
    Base exception for all rulegate errors.

    All rulegate-specific exceptions inherit from this class,
    making it easy to catch any core-related error.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error.

    Example:
        >>> try:
        ...     feed.create_post(author, "ipfs://post")
        ... except RulegateError as e:
        ...     logger.error(f"Action failed: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class AccessDenied(RulegateError):
    """
    Raised when the permission resolver refuses an action at the gate.

    Attributes:
        principal: The principal who attempted the action.
        resource: The resource scope the action targeted.
        permission: The permission that was required.
        reason: Explanation of why access was denied.

    Example:
        >>> raise AccessDenied(
        ...     principal="0xalice",
        ...     resource="feed:1",
        ...     permission="rulegate.permission.SetRules",
        ... )
    """

    def __init__(
        self,
        principal: Any,
        resource: Any = None,
        permission: Any = None,
        reason: str | None = None,
    ) -> None:
        self.principal = principal
        self.resource = resource
        self.permission = permission
        self.reason = reason or "Principal lacks the required permission"

        message = f"Access denied for '{principal}'"
        if permission is not None:
            message += f" on permission '{permission}'"
        if resource is not None:
            message += f" for resource '{resource}'"
        message += f": {self.reason}"

        details = {
            "principal": str(principal),
            "resource": str(resource) if resource is not None else None,
            "permission": str(permission) if permission is not None else None,
            "reason": self.reason,
        }
        super().__init__(message, details)


class InvalidQuery(RulegateError):
    """
    Raised when a wildcard identifier is passed as a query argument.

    Wildcards are only valid as stored keys, where they mean "any".
    Asking whether someone may act on "any resource" is meaningless.

    Example:
        >>> access.has_access("0xalice", ANY_RESOURCE, SET_RULES)
        Traceback (most recent call last):
        InvalidQuery: Wildcard resource scope cannot be used as a query argument
    """

    def __init__(self, argument: str, value: Any = None) -> None:
        self.argument = argument
        self.value = value
        message = f"Wildcard {argument} cannot be used as a query argument"
        super().__init__(message, {"argument": argument, "value": str(value)})


class RoleOperationInvalid(RulegateError):
    """
    Raised when a role administration operation is not allowed.

    Covers duplicate grants, revoking an unassigned role, any attempt
    to touch the Owner role through the generic paths, and callers
    who are not the owner.

    Attributes:
        operation: The operation that was attempted (e.g., "grant_role").
        account: The account that was targeted, if any.
        role: The role that was targeted, if any.
        reason: Why the operation was refused.
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        account: Any = None,
        role: Any = None,
    ) -> None:
        self.operation = operation
        self.account = account
        self.role = role
        self.reason = reason

        message = f"Role operation '{operation}' rejected: {reason}"
        details = {
            "operation": operation,
            "account": str(account) if account is not None else None,
            "role": role,
            "reason": reason,
        }
        super().__init__(message, details)


class AccessEntryInvalid(RulegateError):
    """
    Raised when an access table write makes no sense.

    The only case today is setting an Undefined decision over an entry
    that is already Undefined.
    """

    def __init__(self, role: Any, scope: Any, permission: Any, reason: str) -> None:
        self.role = role
        self.scope = scope
        self.permission = permission
        self.reason = reason
        message = f"Invalid access entry for role {role}: {reason}"
        details = {
            "role": role,
            "scope": str(scope),
            "permission": str(permission),
            "reason": reason,
        }
        super().__init__(message, details)


class RuleRejected(RulegateError):
    """
    Raised when an extension module vetoes an action.

    A module can veto by returning a falsy value from its hook or by
    raising. The veto unwinds the entire action, including any mutation
    that was already applied.

    Attributes:
        module_name: Name of the module that vetoed.
        action: The action that was vetoed (e.g., "follow").
        reason: Optional explanation supplied by the module.

    Example:
        >>> class NoSelfPromotion(RuleModule):
        ...     def process_create_post(self, request):
        ...         if b"buy now" in request.data:
        ...             raise RuleRejected("NoSelfPromotion", "create_post", "spam")
        ...         return True
    """

    def __init__(
        self,
        module_name: str,
        action: str,
        reason: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.module_name = module_name
        self.action = action
        self.reason = reason or "Rule module vetoed the action"

        message = f"Rule '{module_name}' rejected action '{action}': {self.reason}"
        details = {
            "module_name": module_name,
            "action": action,
            "reason": self.reason,
            "context": context or {},
        }
        super().__init__(message, details)


class MissingExtensionModule(RulegateError):
    """
    Raised when an action requires a rule module but none is configured.
    """

    def __init__(self, action: str, primitive_id: Any = None) -> None:
        self.action = action
        self.primitive_id = primitive_id
        message = f"Action '{action}' requires a rule module but none is configured"
        super().__init__(message, {"action": action, "primitive_id": primitive_id})


class DefaultSlotInvalid(RulegateError):
    """
    Raised when a default slot operation is invalid.

    Clearing a default slot that holds nothing is always an error:
    an explicit unset requires a prior value.
    """

    def __init__(self, slot: str, reason: str) -> None:
        self.slot = slot
        self.reason = reason
        super().__init__(f"Default slot '{slot}': {reason}", {"slot": slot, "reason": reason})


class ReentrancyError(RulegateError):
    """
    Raised when a rule module calls back into the primitive it is guarding.

    While a state-changing action is being dispatched, any other
    state-changing action on the same primitive is refused. Reads and
    calls into other primitives remain allowed.
    """

    def __init__(self, primitive_id: Any, action: str, active_action: str) -> None:
        self.primitive_id = primitive_id
        self.action = action
        self.active_action = active_action
        message = (
            f"Re-entrant call to '{action}' on '{primitive_id}' "
            f"while '{active_action}' is in progress"
        )
        details = {
            "primitive_id": primitive_id,
            "action": action,
            "active_action": active_action,
        }
        super().__init__(message, details)


class ConfigurationError(RulegateError):
    """
    Raised when rulegate or a rule module is misconfigured.

    Attributes:
        config_key: The configuration key that caused the error.
        expected: What was expected.
        received: What was actually received.
    """

    def __init__(
        self,
        config_key: str,
        expected: str | None = None,
        received: Any = None,
        reason: str | None = None,
    ) -> None:
        self.config_key = config_key
        self.expected = expected
        self.received = received

        message = f"Configuration error for '{config_key}'"
        if reason:
            message += f": {reason}"
        elif expected:
            message += f": expected {expected}"
            if received is not None:
                message += f", got {received!r}"

        details = {
            "config_key": config_key,
            "expected": expected,
            "received": str(received) if received is not None else None,
            "reason": reason,
        }
        super().__init__(message, details)


class InvalidOperation(RulegateError):
    """
    Raised by primitives when an action breaks their own bookkeeping.

    Examples are following an account twice, leaving a group one is not
    a member of, or editing a post that does not exist.
    """

    def __init__(self, operation: str, reason: str, context: dict[str, Any] | None = None) -> None:
        self.operation = operation
        self.reason = reason
        message = f"Invalid '{operation}': {reason}"
        details = {"operation": operation, "reason": reason, "context": context or {}}
        super().__init__(message, details)
