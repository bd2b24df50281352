"""
Rule dispatch for primitive actions.

Every state-changing action on a primitive goes through
RuleDispatcher.dispatch, which runs inside one atomic block:

    Gate:    authorize -> hooks (pre-mutation state) -> mutation
    Notify:  authorize -> mutation -> hooks (post-mutation state)

Under both disciplines a veto unwinds the whole action, including a
mutation that already ran. Hooks run in the order given: the
primitive-wide module first, then any resource-scoped module.

Re-entrancy: while a thread is dispatching, a second state-changing
dispatch on the same primitive from that thread (typically a rule module
calling back in) raises ReentrancyError. Reads and calls into other
primitives are not affected. Other threads wait for the state lock
instead of failing.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from rulegate.exceptions import (
    AccessDenied,
    MissingExtensionModule,
    ReentrancyError,
    RuleRejected,
    RulegateError,
)
from rulegate.rules.base import Discipline, RuleModule, RuleRequest
from rulegate.state import StateContainer
from rulegate.types import PermissionId, Principal, ResourceScope

if TYPE_CHECKING:
    from rulegate.access.control import RoleBasedAccessControl

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ActionSpec:
    """
    Static description of a primitive action.

    Attributes:
        name: Action name; hooks are looked up as ``process_<name>``.
        discipline: Whether hooks run before or after the mutation.
        permission: Permission required on the primitive, or None when the
            primitive authorizes the caller itself (e.g. "caller is the author").
        requires_module: Refuse the action when no module is configured.
    """

    name: str
    discipline: Discipline
    permission: PermissionId | None = None
    requires_module: bool = False


class RuleDispatcher:
    """
    Runs primitive actions under the Gate or Notify discipline.

    One dispatcher belongs to one primitive.

    Example:
        >>> FOLLOW = ActionSpec("follow", Discipline.GATE)
        >>> dispatcher = RuleDispatcher(state, "graph:1", lambda: access)
        >>> dispatcher.dispatch(
        ...     FOLLOW,
        ...     "0xalice",
        ...     lambda: follows.add(("0xalice", "0xbob")),
        ...     modules=[graph_rule, bob_follow_rule],
        ...     entity="0xbob",
        ... )
    """

    def __init__(
        self,
        state: StateContainer,
        primitive_id: str,
        access_provider: Callable[[], RoleBasedAccessControl],
        reentrancy_guard: bool = True,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            state: State container of the deployment.
            primitive_id: Id of the owning primitive; the default scope
                for permission checks.
            access_provider: Returns the primitive's current access control.
            reentrancy_guard: Refuse nested state-changing dispatches.
        """
        self._state = state
        self.primitive_id = primitive_id
        self._access_provider = access_provider
        self.reentrancy_guard = reentrancy_guard
        self._local = threading.local()

    @property
    def active_action(self) -> str | None:
        """Name of the action this thread is currently dispatching, if any."""
        return getattr(self._local, "active", None)

    def dispatch(
        self,
        spec: ActionSpec,
        principal: Principal,
        mutation: Callable[[], T],
        *,
        modules: Sequence[RuleModule | None] = (),
        scope: ResourceScope | Hashable | None = None,
        entity: Any = None,
        params: dict[str, Any] | None = None,
        data: bytes = b"",
    ) -> T:
        """
        Authorize, mutate and run hooks as one atomic action.

        Args:
            spec: The action being performed.
            principal: Who is acting.
            mutation: Applies the state change; its return value is returned.
            modules: Rule modules to consult, in order; None entries are skipped.
            scope: Resource for the permission check (defaults to the primitive).
            entity: Affected entity, passed to hooks.
            params: Action parameters, passed to hooks.
            data: Opaque payload for the hooks.

        Returns:
            Whatever the mutation returned.

        Raises:
            AccessDenied: The principal lacks spec.permission.
            MissingExtensionModule: A module is required but none is configured.
            RuleRejected: A module vetoed.
            ReentrancyError: Called while this thread runs another action on this primitive.
        """
        with self._state.atomic():
            active = self.active_action
            if self.reentrancy_guard and active is not None:
                logger.warning(
                    f"Blocked re-entrant '{spec.name}' on {self.primitive_id} "
                    f"during '{active}'"
                )
                raise ReentrancyError(self.primitive_id, spec.name, active)

            configured = [m for m in modules if m is not None]
            if spec.requires_module and not configured:
                raise MissingExtensionModule(spec.name, self.primitive_id)

            request = RuleRequest(
                action=spec.name,
                principal=principal,
                primitive_id=self.primitive_id,
                entity=entity,
                params=dict(params or {}),
                data=bytes(data),
                discipline=spec.discipline,
                access=self._access_provider(),
            )

            self._local.active = spec.name
            try:
                self._authorize(spec, principal, scope)
                if spec.discipline is Discipline.GATE:
                    self._run_hooks(configured, request)
                    result = mutation()
                else:
                    result = mutation()
                    self._run_hooks(configured, request)
            finally:
                self._local.active = active

        logger.debug(
            f"Dispatched '{spec.name}' ({spec.discipline.value}) on {self.primitive_id} "
            f"for '{principal}' through {len(configured)} module(s)"
        )
        return result

    def _authorize(
        self,
        spec: ActionSpec,
        principal: Principal,
        scope: ResourceScope | Hashable | None,
    ) -> None:
        if spec.permission is None:
            return
        target = ResourceScope.of(self.primitive_id if scope is None else scope)
        access = self._access_provider()
        if not access.has_access(principal, target, spec.permission):
            logger.info(
                f"Denied '{spec.name}' on {self.primitive_id} for '{principal}' "
                f"(missing {spec.permission})"
            )
            raise AccessDenied(principal, target, spec.permission)

    def _run_hooks(self, modules: Sequence[RuleModule], request: RuleRequest) -> None:
        for module in modules:
            run_hook(module, request)


def run_hook(module: RuleModule, request: RuleRequest) -> None:
    """
    Invoke one module's hook and turn any failure into a veto.

    RuleRejected and other rulegate errors raised by the module propagate
    unchanged. Any other exception becomes a RuleRejected chained to it.
    A falsy verdict becomes a RuleRejected.
    """
    try:
        verdict = module.process(request.action, request)
    except RulegateError:
        logger.warning(f"Rule {module.name} raised during '{request.action}'")
        raise
    except Exception as e:
        logger.warning(f"Rule {module.name} failed during '{request.action}': {e}")
        raise RuleRejected(module.name, request.action, f"module raised {type(e).__name__}: {e}") from e

    if not verdict:
        logger.warning(
            f"Rule {module.name} vetoed '{request.action}' by '{request.principal}' "
            f"on {request.primitive_id}"
        )
        raise RuleRejected(module.name, request.action)
