"""
Built-in rule modules for rulegate.

This module provides commonly used rule modules that can be attached to
primitives directly or extended for custom rules.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, ValidationError

from rulegate.exceptions import ConfigurationError, RuleRejected
from rulegate.rules.base import RuleModule, RuleRequest
from rulegate.rules.dispatcher import run_hook
from rulegate.types import PermissionId

if TYPE_CHECKING:
    from rulegate.access.control import RoleBasedAccessControl
    from rulegate.primitives.group import Group

logger = logging.getLogger(__name__)


class AllowAllRule(RuleModule):
    """
    Rule that lets every action through.

    Handy as a placeholder, or as one of the any-of members in a
    CombinedRule.
    """

    def process(self, action: str, request: RuleRequest) -> bool:
        return True


class DenyAllRule(RuleModule):
    """
    Rule that vetoes every action.

    Attach it to freeze a primitive: nothing guarded by rules can happen
    until the module is swapped out.
    """

    def process(self, action: str, request: RuleRequest) -> bool:
        logger.debug(f"DenyAllRule: vetoing '{action}' by '{request.principal}'")
        return False


class CallbackRule(RuleModule):
    """
    Rule that delegates to a callable.

    Example:
        >>> rule = CallbackRule(lambda action, request: request.principal != "0xspammer")
        >>> feed.set_rule_module(owner, rule)
    """

    def __init__(
        self,
        callback: Callable[[str, RuleRequest], bool],
        actions: Sequence[str] | None = None,
    ) -> None:
        """
        Args:
            callback: Called as ``callback(action, request)``.
            actions: Restrict the rule to these actions; others are vetoed.
                None means all actions.
        """
        super().__init__()
        self.callback = callback
        self.actions = set(actions) if actions is not None else None

    def process(self, action: str, request: RuleRequest) -> bool:
        if self.actions is not None and action not in self.actions:
            return False
        return bool(self.callback(action, request))


class AccessGatedConfig(BaseModel):
    """Configuration of AccessGatedRule, sent as JSON bytes."""

    model_config = ConfigDict(extra="forbid")

    permission: str
    resource: str | None = None


class AccessGatedRule(RuleModule):
    """
    Rule that requires the acting principal to hold a permission.

    The permission is named in the configuration and checked through an
    access control, which may differ from the primitive's own.

    Example:
        >>> rule = AccessGatedRule(access)
        >>> feed.set_rule_module(
        ...     owner, rule, b'{"permission": "app.permission.Post", "resource": "app:1"}'
        ... )
    """

    def __init__(self, access: RoleBasedAccessControl | None = None) -> None:
        """
        Args:
            access: Access control to consult. When None, the access
                control of the primitive raising the request is used.
        """
        super().__init__()
        self.access = access
        self.settings: AccessGatedConfig | None = None
        self.permission: PermissionId | None = None

    def initialize(self, configuration: bytes = b"") -> None:
        try:
            settings = AccessGatedConfig.model_validate_json(configuration)
        except ValidationError as e:
            raise ConfigurationError(
                self.name,
                expected='JSON {"permission": str, "resource": str | null}',
                received=configuration,
                reason=str(e),
            ) from e
        super().initialize(configuration)
        self.settings = settings
        self.permission = PermissionId.named(settings.permission)

    def process(self, action: str, request: RuleRequest) -> bool:
        if self.settings is None or self.permission is None:
            raise RuleRejected(self.name, action, "module is not initialized")
        access = self.access or request.access
        if access is None:
            raise RuleRejected(self.name, action, "no access control to consult")
        resource = self.settings.resource or request.primitive_id
        return access.has_access(request.principal, resource, self.permission)


class MembershipGatedRule(RuleModule):
    """
    Rule that only lets members of a group act.

    Reads the membership state of another primitive, e.g. to restrict a
    feed to the members of a group.
    """

    def __init__(self, group: Group) -> None:
        super().__init__()
        self.group = group

    def process(self, action: str, request: RuleRequest) -> bool:
        is_member = self.group.is_member(request.principal)
        if not is_member:
            logger.debug(
                f"MembershipGatedRule: '{request.principal}' is not a member of {self.group.id}"
            )
        return is_member


class CombinedRule(RuleModule):
    """
    Combines several modules into one.

    Every required module must pass. When any-of modules are given, at
    least one of them must pass as well. Required modules run first, in
    order; the first veto stops evaluation.

    The configuration given to the combination is passed on to every
    child that is not initialized yet; children initialized beforehand
    keep their own configuration.

    Example:
        >>> rule = CombinedRule(
        ...     required=[MembershipGatedRule(group)],
        ...     any_of=[AccessGatedRule(access), CallbackRule(is_verified)],
        ... )
        >>> feed.set_rule_module(owner, rule, b'{"permission": "app.permission.Post"}')
    """

    def __init__(
        self,
        required: Sequence[RuleModule] = (),
        any_of: Sequence[RuleModule] = (),
    ) -> None:
        super().__init__()
        if not required and not any_of:
            raise ConfigurationError("CombinedRule", reason="at least one module is required")
        self.required = list(required)
        self.any_of = list(any_of)

    def initialize(self, configuration: bytes = b"") -> None:
        for module in self.required + self.any_of:
            if not module.is_initialized:
                module.initialize(configuration)
        super().initialize(configuration)

    def process(self, action: str, request: RuleRequest) -> bool:
        for module in self.required:
            run_hook(module, request)

        if not self.any_of:
            return True

        failures: list[str] = []
        for module in self.any_of:
            try:
                run_hook(module, request)
                return True
            except RuleRejected as e:
                failures.append(e.module_name)
        raise RuleRejected(
            self.name, action, "no any-of rule passed", {"rejected_by": failures}
        )

    def describe(self) -> dict[str, Any]:
        """Summarize the composition for logs."""
        return {
            "required": [m.name for m in self.required],
            "any_of": [m.name for m in self.any_of],
        }
