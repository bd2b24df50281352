"""
Graph primitive: who follows whom.

Following runs under the Gate discipline with two tiers of rules: the
graph-wide module first, then the module the followed account attached
to itself. Swapping an account's follow module is itself an action that
the graph-wide module hears about through ``process_follow_rules_changed``.
"""

from __future__ import annotations

import logging
from typing import Any

from rulegate.exceptions import AccessDenied, InvalidOperation
from rulegate.events import EventType
from rulegate.primitives.base import Primitive
from rulegate.rules.base import Discipline, RuleModule
from rulegate.rules.dispatcher import ActionSpec
from rulegate.state import Namespace
from rulegate.types import Principal, is_zero_principal

logger = logging.getLogger(__name__)

FOLLOW = ActionSpec("follow", Discipline.GATE)
UNFOLLOW = ActionSpec("unfollow", Discipline.GATE)
FOLLOW_RULES_CHANGED = ActionSpec("follow_rules_changed", Discipline.NOTIFY)


class Graph(Primitive):
    """
    A follow graph with per-account follow rules.

    Example:
        >>> graph = core.create_graph()
        >>> graph.set_follow_rules("0xbob", CallbackRule(lambda a, r: r.principal != "0xeve"))
        >>> graph.follow("0xalice", "0xbob")
        >>> graph.is_following("0xalice", "0xbob")
        True
    """

    kind = "graph"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._follows = self._state.namespace(f"{self.id}.follows")
        self._follower_counts = self._state.namespace(f"{self.id}.follower_counts")
        self._following_counts = self._state.namespace(f"{self.id}.following_counts")
        self._follow_rules = self._state.namespace(f"{self.id}.follow_rules")

    def follow(
        self,
        follower: Principal,
        target: Principal,
        data: bytes = b"",
    ) -> str:
        """
        Follow an account.

        Args:
            follower: The acting principal.
            target: The account to follow.
            data: Opaque payload for the rule modules.

        Returns:
            The follow id.

        Raises:
            InvalidOperation: Self-follow, zero target, or already following.
            RuleRejected: The graph module or the target's module vetoed.
        """
        with self._state.atomic():
            self._check_can_follow(follower, target)
            follow_id = self._ids.next_id(f"{self.id}.follow")

            def mutation() -> str:
                # hooks may have followed re-entrantly
                self._check_can_follow(follower, target)
                self._follows[(follower, target)] = follow_id
                _bump(self._follower_counts, target, 1)
                _bump(self._following_counts, follower, 1)
                self._emit(
                    EventType.FOLLOWED,
                    {"follower": follower, "target": target, "follow_id": follow_id},
                )
                return follow_id

            return self.dispatcher.dispatch(
                FOLLOW,
                follower,
                mutation,
                modules=[self.rule_module, self.follow_rules_of(target)],
                entity=target,
                params={"follow_id": follow_id},
                data=data,
            )

    def unfollow(self, follower: Principal, target: Principal, data: bytes = b"") -> None:
        """
        Stop following an account. Only the graph-wide module is consulted.

        Raises:
            InvalidOperation: Not following.
            RuleRejected: The graph module vetoed.
        """
        with self._state.atomic():
            follow_id = self._require_follow(follower, target)

            def mutation() -> None:
                self._require_follow(follower, target)
                del self._follows[(follower, target)]
                _bump(self._follower_counts, target, -1)
                _bump(self._following_counts, follower, -1)
                self._emit(
                    EventType.UNFOLLOWED,
                    {"follower": follower, "target": target, "follow_id": follow_id},
                )

            self.dispatcher.dispatch(
                UNFOLLOW,
                follower,
                mutation,
                modules=[self.rule_module],
                entity=target,
                params={"follow_id": follow_id},
                data=data,
            )

    def set_follow_rules(
        self,
        caller: Principal,
        module: RuleModule | None,
        configuration: bytes = b"",
        data: bytes = b"",
    ) -> None:
        """
        Attach (or clear) the follow rules of the caller's own account.

        The graph-wide module, if any, must implement
        ``process_follow_rules_changed``; it runs after the swap and may veto.

        Raises:
            AccessDenied: Caller is the zero principal.
            RuleRejected: The graph module vetoed the change.
        """
        if is_zero_principal(caller):
            raise AccessDenied(caller, self.id, reason="zero principal cannot own follow rules")

        with self._state.atomic():
            previous = self.follow_rules_of(caller)

            def mutation() -> None:
                if module is None:
                    self._follow_rules.pop(caller, None)
                    self._emit(
                        EventType.SCOPED_RULE_MODULE_CLEARED,
                        {"account": caller, "previous": previous.name if previous else None},
                    )
                    return
                module.initialize(configuration)
                self._follow_rules[caller] = module
                self._emit(
                    EventType.SCOPED_RULE_MODULE_SET,
                    {
                        "account": caller,
                        "module": module.name,
                        "previous": previous.name if previous else None,
                    },
                )

            self.dispatcher.dispatch(
                FOLLOW_RULES_CHANGED,
                caller,
                mutation,
                modules=[self.rule_module],
                entity=caller,
                params={"previous": previous, "current": module},
                data=data,
            )

    def follow_rules_of(self, account: Principal) -> RuleModule | None:
        """The follow rule module attached to an account, or None."""
        return self._follow_rules.get(account)

    def is_following(self, follower: Principal, target: Principal) -> bool:
        return (follower, target) in self._follows

    def get_follow_id(self, follower: Principal, target: Principal) -> str | None:
        return self._follows.get((follower, target))

    def follower_count(self, account: Principal) -> int:
        return self._follower_counts.get(account, 0)

    def following_count(self, account: Principal) -> int:
        return self._following_counts.get(account, 0)

    def _check_can_follow(self, follower: Principal, target: Principal) -> None:
        if is_zero_principal(target) or is_zero_principal(follower):
            raise InvalidOperation("follow", "accounts must not be the zero principal")
        if follower == target:
            raise InvalidOperation("follow", "accounts cannot follow themselves")
        if self.is_following(follower, target):
            raise InvalidOperation("follow", "already following", {"target": target})

    def _require_follow(self, follower: Principal, target: Principal) -> str:
        follow_id = self._follows.get((follower, target))
        if follow_id is None:
            raise InvalidOperation("unfollow", "not following", {"target": target})
        return follow_id


def _bump(counts: Namespace, account: Principal, delta: int) -> None:
    value = counts.get(account, 0) + delta
    if value:
        counts[account] = value
    else:
        counts.pop(account, None)
