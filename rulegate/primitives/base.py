"""
Common plumbing for primitives.

A primitive (feed, graph, group, app) owns a namespace in the state
container, points at an access control, optionally carries a
primitive-wide rule module and exposes opaque extra data. All of its
state-changing actions go through its RuleDispatcher.
"""

from __future__ import annotations

import logging
from typing import Any

from rulegate.access.control import RoleBasedAccessControl
from rulegate.events import ChangeEvent, EventType
from rulegate.extra_data import ExtraDataStore
from rulegate.rules.base import Discipline, RuleModule
from rulegate.rules.dispatcher import ActionSpec, RuleDispatcher
from rulegate.state import StateContainer
from rulegate.types import IdGenerator, Permissions, Principal

logger = logging.getLogger(__name__)

SET_RULE_MODULE = ActionSpec("rules_changed", Discipline.NOTIFY, Permissions.SET_RULES)
SET_ACCESS_CONTROL = ActionSpec(
    "set_access_control", Discipline.GATE, Permissions.SET_ACCESS_CONTROL
)
SET_EXTRA_DATA = ActionSpec("set_extra_data", Discipline.GATE, Permissions.SET_EXTRA_DATA)


class Primitive:
    """
    Base class for primitives.

    Subclasses set ``kind`` and describe their actions as ActionSpec
    constants, then route every mutation through ``self.dispatcher``.

    Attributes:
        id: Unique id of the primitive, also its resource scope.
        kind: Primitive kind ("feed", "graph"...).
        dispatcher: Runs this primitive's actions.
        extra_data: Opaque metadata of the primitive itself.
    """

    kind = "primitive"

    def __init__(
        self,
        state: StateContainer,
        access: RoleBasedAccessControl,
        ids: IdGenerator,
        rule_module: RuleModule | None = None,
        rule_configuration: bytes = b"",
        reentrancy_guard: bool = True,
    ) -> None:
        """
        Create a primitive.

        Args:
            state: State container of the deployment.
            access: Access control guarding administrative actions.
            ids: Generator for this primitive's id and its entity ids.
            rule_module: Optional primitive-wide rule module.
            rule_configuration: Configuration bytes for rule_module.
            reentrancy_guard: Refuse re-entrant actions from rule modules.
        """
        self.id = ids.next_id(self.kind)
        self._state = state
        self._ids = ids
        self._data = state.namespace(self.id)
        self.extra_data = ExtraDataStore(state, self.id)
        self.dispatcher = RuleDispatcher(
            state, self.id, lambda: self.access, reentrancy_guard=reentrancy_guard
        )

        with state.atomic():
            self._data["access"] = access
            self._data["rule_module"] = None
            if rule_module is not None:
                rule_module.initialize(rule_configuration)
                self._data["rule_module"] = rule_module

        logger.debug(f"Created {self.kind} {self.id} (rule module: {rule_module!r})")

    @property
    def access(self) -> RoleBasedAccessControl:
        """The access control currently guarding this primitive."""
        return self._data["access"]

    @property
    def rule_module(self) -> RuleModule | None:
        """The primitive-wide rule module, or None."""
        return self._data["rule_module"]

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_rule_module(
        self,
        caller: Principal,
        module: RuleModule | None,
        configuration: bytes = b"",
        data: bytes = b"",
    ) -> None:
        """
        Replace (or clear, with None) the primitive-wide rule module.

        The new module is initialized with ``configuration``. If it defines
        ``process_rules_changed``, that hook then runs against the new
        state and may veto the swap. Clearing never runs a hook.

        Raises:
            AccessDenied: Caller lacks SET_RULES on this primitive.
            ConfigurationError: The module refused the configuration.
            RuleRejected: The new module vetoed its own installation.
        """
        with self._state.atomic():
            previous = self.rule_module

            def mutation() -> None:
                if module is not None:
                    module.initialize(configuration)
                self._data["rule_module"] = module
                if module is None:
                    self._emit(EventType.RULE_MODULE_CLEARED, {"previous": _module_name(previous)})
                else:
                    self._emit(
                        EventType.RULE_MODULE_SET,
                        {"module": module.name, "previous": _module_name(previous)},
                    )

            notify = [module] if module is not None and module.supports("rules_changed") else []
            self.dispatcher.dispatch(
                SET_RULE_MODULE,
                caller,
                mutation,
                modules=notify,
                params={"previous": previous, "current": module},
                data=data,
            )
        logger.info(f"{self.id}: rule module {previous!r} -> {module!r}")

    def set_access_control(self, caller: Principal, access: RoleBasedAccessControl) -> None:
        """
        Point this primitive at another access control.

        The caller needs SET_ACCESS_CONTROL under the current one.

        Raises:
            AccessDenied: Caller lacks SET_ACCESS_CONTROL on this primitive.
        """
        with self._state.atomic():
            previous = self.access

            def mutation() -> None:
                self._data["access"] = access
                self._emit(
                    EventType.ACCESS_CONTROL_CHANGED,
                    {"previous": previous.access_id, "current": access.access_id},
                )

            self.dispatcher.dispatch(SET_ACCESS_CONTROL, caller, mutation)

    def set_extra_data(self, caller: Principal, key: bytes, value: bytes) -> None:
        """
        Add, update or (with an empty value) remove an extra data entry.

        Raises:
            AccessDenied: Caller lacks SET_EXTRA_DATA on this primitive.
            ValueError: Malformed key.
        """

        def mutation() -> None:
            if not value:
                if self.extra_data.remove(key):
                    self._emit(EventType.EXTRA_DATA_REMOVED, {"key": key})
                return
            existed = self.extra_data.set(key, value)
            event_type = EventType.EXTRA_DATA_UPDATED if existed else EventType.EXTRA_DATA_ADDED
            self._emit(event_type, {"key": key, "value": bytes(value)})

        self.dispatcher.dispatch(SET_EXTRA_DATA, caller, mutation)

    def get_extra_data(self, key: bytes) -> bytes | None:
        """Read an extra data entry, or None when absent."""
        return self.extra_data.get(key)

    # ------------------------------------------------------------------

    def _emit(self, event_type: EventType, payload: dict[str, Any]) -> None:
        self._state.emit(ChangeEvent(event_type, self.id, payload))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


def _module_name(module: RuleModule | None) -> str | None:
    return module.name if module is not None else None
