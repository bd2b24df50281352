"""
Group primitive: membership.

Every membership change runs under the Gate discipline: the group's rule
module sees the membership as it was and decides before anything changes.
"""

from __future__ import annotations

import logging
from typing import Any

from rulegate.exceptions import InvalidOperation
from rulegate.events import EventType
from rulegate.primitives.base import Primitive
from rulegate.rules.base import Discipline
from rulegate.rules.dispatcher import ActionSpec
from rulegate.types import Permissions, Principal, is_zero_principal

logger = logging.getLogger(__name__)

JOIN = ActionSpec("joining", Discipline.GATE)
LEAVE = ActionSpec("leaving", Discipline.GATE)
ADD_MEMBER = ActionSpec("addition", Discipline.GATE, Permissions.ADD_MEMBER)
REMOVE_MEMBER = ActionSpec("removal", Discipline.GATE, Permissions.REMOVE_MEMBER)


class Group(Primitive):
    """
    A group of member accounts.

    Members join and leave by themselves; accounts holding ADD_MEMBER or
    REMOVE_MEMBER on the group can add or remove others.

    Example:
        >>> group = core.create_group()
        >>> group.join("0xalice")
        >>> group.is_member("0xalice")
        True
    """

    kind = "group"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._members = self._state.namespace(f"{self.id}.members")

    def join(self, account: Principal, data: bytes = b"") -> str:
        """
        Join the group.

        Returns:
            The membership id.

        Raises:
            InvalidOperation: Already a member.
            RuleRejected: The group's rule module vetoed.
        """
        return self._add(JOIN, account, account, EventType.MEMBER_JOINED, data)

    def leave(self, account: Principal, data: bytes = b"") -> None:
        """
        Leave the group.

        Raises:
            InvalidOperation: Not a member.
            RuleRejected: The group's rule module vetoed.
        """
        self._remove(LEAVE, account, account, EventType.MEMBER_LEFT, data)

    def add_member(self, caller: Principal, account: Principal, data: bytes = b"") -> str:
        """
        Add someone else to the group.

        Raises:
            AccessDenied: Caller lacks ADD_MEMBER on the group.
            InvalidOperation: Already a member.
            RuleRejected: The group's rule module vetoed.
        """
        return self._add(ADD_MEMBER, caller, account, EventType.MEMBER_ADDED, data)

    def remove_member(self, caller: Principal, account: Principal, data: bytes = b"") -> None:
        """
        Remove someone from the group.

        Raises:
            AccessDenied: Caller lacks REMOVE_MEMBER on the group.
            InvalidOperation: Not a member.
            RuleRejected: The group's rule module vetoed.
        """
        self._remove(REMOVE_MEMBER, caller, account, EventType.MEMBER_REMOVED, data)

    def is_member(self, account: Principal) -> bool:
        return account in self._members

    def membership_id(self, account: Principal) -> str | None:
        return self._members.get(account)

    def members(self) -> tuple[Principal, ...]:
        return tuple(self._members)

    @property
    def member_count(self) -> int:
        return len(self._members)

    def _add(
        self,
        spec: ActionSpec,
        caller: Principal,
        account: Principal,
        event_type: EventType,
        data: bytes,
    ) -> str:
        with self._state.atomic():
            self._check_joinable(spec, account)
            membership_id = self._ids.next_id(f"{self.id}.membership")

            def mutation() -> str:
                self._check_joinable(spec, account)
                self._members[account] = membership_id
                self._emit(
                    event_type,
                    {"account": account, "membership_id": membership_id, "by": caller},
                )
                return membership_id

            return self.dispatcher.dispatch(
                spec,
                caller,
                mutation,
                modules=[self.rule_module],
                entity=account,
                params={"membership_id": membership_id},
                data=data,
            )

    def _remove(
        self,
        spec: ActionSpec,
        caller: Principal,
        account: Principal,
        event_type: EventType,
        data: bytes,
    ) -> None:
        with self._state.atomic():
            membership_id = self._require_member(spec, account)

            def mutation() -> None:
                self._require_member(spec, account)
                del self._members[account]
                self._emit(
                    event_type,
                    {"account": account, "membership_id": membership_id, "by": caller},
                )

            self.dispatcher.dispatch(
                spec,
                caller,
                mutation,
                modules=[self.rule_module],
                entity=account,
                params={"membership_id": membership_id},
                data=data,
            )

    def _check_joinable(self, spec: ActionSpec, account: Principal) -> None:
        if is_zero_principal(account):
            raise InvalidOperation(spec.name, "account must not be the zero principal")
        if self.is_member(account):
            raise InvalidOperation(spec.name, "already a member", {"account": account})

    def _require_member(self, spec: ActionSpec, account: Principal) -> str:
        membership_id = self.membership_id(account)
        if membership_id is None:
            raise InvalidOperation(spec.name, "not a member", {"account": account})
        return membership_id
