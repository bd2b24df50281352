"""
Tests for rule modules and rule dispatch.

Tests cover:
- RuleModule hook lookup and initialization
- Gate and Notify disciplines, including rollback on veto
- Module ordering, missing modules and re-entrancy
- Built-in rule modules
"""

from __future__ import annotations

import threading
import time

import pytest

from rulegate import (
    AccessDecision,
    AccessDenied,
    AccessGatedRule,
    ActionSpec,
    AllowAllRule,
    CallbackRule,
    ChangeEvent,
    CombinedRule,
    ConfigurationError,
    DenyAllRule,
    Discipline,
    EventType,
    MembershipGatedRule,
    MissingExtensionModule,
    Namespace,
    ReentrancyError,
    RoleBasedAccessControl,
    RuleDispatcher,
    RuleModule,
    RuleRejected,
    RuleRequest,
    StateContainer,
)
from rulegate.rules import run_hook
from tests.conftest import ALICE, BOB, MODERATOR, OWNER, PERM_READ, RecordingRule

GATE_ACTION = ActionSpec("touch", Discipline.GATE)
NOTIFY_ACTION = ActionSpec("touch", Discipline.NOTIFY)
GUARDED_ACTION = ActionSpec("touch", Discipline.GATE, PERM_READ)
REQUIRED_ACTION = ActionSpec("touch", Discipline.GATE, requires_module=True)


class ClosedGroupRule(RuleModule):
    def __init__(self, allowlist=()):
        super().__init__()
        self.allowlist = set(allowlist)

    def process_joining(self, request: RuleRequest) -> bool:
        return request.principal in self.allowlist

    def process_leaving(self, request: RuleRequest) -> bool:
        return True


def _request(action: str = "touch", principal: str = ALICE, **kwargs) -> RuleRequest:
    return RuleRequest(action=action, principal=principal, primitive_id="prim:1", **kwargs)


@pytest.fixture
def rbac(state: StateContainer) -> RoleBasedAccessControl:
    return RoleBasedAccessControl(state, OWNER)


@pytest.fixture
def dispatcher(state: StateContainer, rbac: RoleBasedAccessControl) -> RuleDispatcher:
    return RuleDispatcher(state, "prim:1", lambda: rbac)


@pytest.fixture
def store(state: StateContainer) -> Namespace:
    return state.namespace("prim:1")


class TestRuleModule:
    """Tests for the RuleModule base class."""

    def test_hook_lookup_by_action(self):
        rule = ClosedGroupRule(allowlist=[ALICE])
        assert rule.process("joining", _request("joining")) is True
        assert rule.process("joining", _request("joining", principal=BOB)) is False

    def test_missing_hook_vetoes(self):
        rule = ClosedGroupRule()
        assert rule.supports("leaving")
        assert not rule.supports("addition")
        assert rule.process("addition", _request("addition")) is False

    def test_supported_actions(self):
        assert ClosedGroupRule.get_supported_actions() == ["joining", "leaving"]

    def test_initialize_records_configuration(self):
        rule = ClosedGroupRule()
        assert not rule.is_initialized
        rule.initialize(b"cfg")
        assert rule.is_initialized
        assert rule.configuration == b"cfg"

    def test_reinitialize_same_bytes_is_noop(self):
        rule = ClosedGroupRule()
        rule.initialize(b"cfg")
        rule.initialize(b"cfg")
        assert rule.configuration == b"cfg"

    def test_reinitialize_different_bytes_rejected(self):
        rule = ClosedGroupRule()
        rule.initialize(b"cfg")
        with pytest.raises(ConfigurationError):
            rule.initialize(b"other")

    def test_name_and_repr(self):
        rule = ClosedGroupRule()
        assert rule.name == "ClosedGroupRule"
        assert repr(rule) == "<ClosedGroupRule>"


class TestRunHook:
    """Tests for verdict handling."""

    def test_truthy_verdict_passes(self):
        run_hook(AllowAllRule(), _request())

    def test_falsy_verdict_rejects(self):
        with pytest.raises(RuleRejected) as exc_info:
            run_hook(DenyAllRule(), _request())
        assert exc_info.value.module_name == "DenyAllRule"
        assert exc_info.value.action == "touch"

    def test_unexpected_exception_becomes_rejection(self):
        def explode(action, request):
            raise KeyError("boom")

        with pytest.raises(RuleRejected) as exc_info:
            run_hook(CallbackRule(explode), _request())
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert "KeyError" in exc_info.value.reason

    def test_rulegate_errors_propagate_unchanged(self):
        def deny(action, request):
            raise AccessDenied(request.principal, reason="blocked")

        with pytest.raises(AccessDenied):
            run_hook(CallbackRule(deny), _request())


class TestGateDiscipline:
    """Hooks run before the mutation and see the old state."""

    def test_hook_sees_pre_mutation_state(self, dispatcher, store):
        rule = RecordingRule(observe=lambda request: "done" in store)
        dispatcher.dispatch(GATE_ACTION, ALICE, lambda: store.update(done=True), modules=[rule])
        assert rule.observations == [False]
        assert store["done"] is True

    def test_veto_prevents_mutation(self, dispatcher, store):
        calls = []

        with pytest.raises(RuleRejected):
            dispatcher.dispatch(
                GATE_ACTION, ALICE, lambda: calls.append(1), modules=[DenyAllRule()]
            )
        assert calls == []

    def test_mutation_result_is_returned(self, dispatcher):
        assert dispatcher.dispatch(GATE_ACTION, ALICE, lambda: "id:1") == "id:1"

    def test_no_modules_means_no_hooks(self, dispatcher, store):
        dispatcher.dispatch(GATE_ACTION, ALICE, lambda: store.update(done=True), modules=[None])
        assert store["done"] is True


class TestNotifyDiscipline:
    """Hooks run after the mutation, see the new state and can still veto."""

    def test_hook_sees_post_mutation_state(self, dispatcher, store):
        rule = RecordingRule(observe=lambda request: store.get("count"))
        dispatcher.dispatch(NOTIFY_ACTION, ALICE, lambda: store.update(count=1), modules=[rule])
        assert rule.observations == [1]

    def test_veto_rolls_back_mutation(self, dispatcher, store, state, recorder):
        state.event_bus.add_hook(recorder)
        store["count"] = 1

        def mutation():
            store["count"] += 1
            state.emit(ChangeEvent(EventType.POST_CREATED, "prim:1", {}))

        with pytest.raises(RuleRejected):
            dispatcher.dispatch(NOTIFY_ACTION, ALICE, mutation, modules=[DenyAllRule()])
        assert store["count"] == 1
        assert recorder.events == []

    def test_raising_hook_rolls_back_mutation(self, dispatcher, store):
        def explode(action, request):
            raise RuntimeError("module bug")

        with pytest.raises(RuleRejected):
            dispatcher.dispatch(
                NOTIFY_ACTION,
                ALICE,
                lambda: store.update(count=1),
                modules=[CallbackRule(explode)],
            )
        assert "count" not in store


class TestDispatchOrdering:
    """Tests for multi-tier hooks."""

    def test_modules_run_in_order(self, dispatcher):
        order = []
        first = CallbackRule(lambda a, r: order.append("primitive") is None)
        second = CallbackRule(lambda a, r: order.append("scoped") is None)
        dispatcher.dispatch(GATE_ACTION, ALICE, lambda: None, modules=[first, second])
        assert order == ["primitive", "scoped"]

    def test_first_veto_stops_evaluation(self, dispatcher):
        second = RecordingRule()
        with pytest.raises(RuleRejected):
            dispatcher.dispatch(GATE_ACTION, ALICE, lambda: None, modules=[DenyAllRule(), second])
        assert second.requests == []

    def test_second_tier_veto_rolls_back(self, dispatcher, store):
        first = RecordingRule()
        with pytest.raises(RuleRejected):
            dispatcher.dispatch(
                NOTIFY_ACTION,
                ALICE,
                lambda: store.update(done=True),
                modules=[first, DenyAllRule()],
            )
        assert first.actions == ["touch"]
        assert "done" not in store

    def test_missing_required_module(self, dispatcher):
        with pytest.raises(MissingExtensionModule):
            dispatcher.dispatch(REQUIRED_ACTION, ALICE, lambda: None, modules=[None])

    def test_request_contents(self, dispatcher, rbac):
        rule = RecordingRule()
        dispatcher.dispatch(
            GATE_ACTION,
            ALICE,
            lambda: None,
            modules=[rule],
            entity="post:1",
            params={"uri": "ipfs://x"},
            data=b"payload",
        )
        request = rule.requests[0]
        assert request.principal == ALICE
        assert request.primitive_id == "prim:1"
        assert request.entity == "post:1"
        assert request.get_param("uri") == "ipfs://x"
        assert request.get_param("missing", 7) == 7
        assert request.data == b"payload"
        assert request.discipline is Discipline.GATE
        assert request.access is rbac


class TestAuthorization:
    """Permission checks run before any hook."""

    def test_missing_permission_denied(self, dispatcher):
        rule = RecordingRule()
        with pytest.raises(AccessDenied):
            dispatcher.dispatch(GUARDED_ACTION, ALICE, lambda: None, modules=[rule])
        assert rule.requests == []

    def test_permission_on_primitive(self, dispatcher, rbac):
        rbac.grant_role(OWNER, ALICE, MODERATOR)
        rbac.set_access(OWNER, MODERATOR, "prim:1", PERM_READ, AccessDecision.GRANTED)
        dispatcher.dispatch(GUARDED_ACTION, ALICE, lambda: None)

    def test_explicit_scope(self, dispatcher, rbac):
        rbac.grant_role(OWNER, ALICE, MODERATOR)
        rbac.set_access(OWNER, MODERATOR, "prim:1", PERM_READ, AccessDecision.GRANTED)
        with pytest.raises(AccessDenied):
            dispatcher.dispatch(GUARDED_ACTION, ALICE, lambda: None, scope="other:1")

    def test_owner_passes(self, dispatcher):
        dispatcher.dispatch(GUARDED_ACTION, OWNER, lambda: None)


class TestReentrancy:
    """A module calling back into its own primitive."""

    def test_reentrant_dispatch_blocked(self, dispatcher, store):
        def reenter(action, request):
            dispatcher.dispatch(GATE_ACTION, BOB, lambda: store.update(inner=True))
            return True

        with pytest.raises(ReentrancyError) as exc_info:
            dispatcher.dispatch(
                GATE_ACTION,
                ALICE,
                lambda: store.update(outer=True),
                modules=[CallbackRule(reenter)],
            )
        assert exc_info.value.active_action == "touch"
        assert store == {}
        assert dispatcher.active_action is None

    def test_guard_can_be_disabled(self, state, rbac, store):
        dispatcher = RuleDispatcher(state, "prim:1", lambda: rbac, reentrancy_guard=False)

        def reenter(action, request):
            if request.principal == ALICE:
                dispatcher.dispatch(GATE_ACTION, BOB, lambda: store.update(inner=True))
            return True

        dispatcher.dispatch(
            GATE_ACTION,
            ALICE,
            lambda: store.update(outer=True),
            modules=[CallbackRule(reenter)],
        )
        assert store == {"inner": True, "outer": True}

    def test_other_primitive_is_reachable(self, state, rbac, dispatcher, store):
        other = RuleDispatcher(state, "prim:2", lambda: rbac)

        def touch_other(action, request):
            other.dispatch(GATE_ACTION, ALICE, lambda: store.update(other=True))
            return True

        dispatcher.dispatch(GATE_ACTION, ALICE, lambda: None, modules=[CallbackRule(touch_other)])
        assert store["other"] is True

    def test_other_thread_waits_instead_of_failing(self, dispatcher, store):
        entered = threading.Event()
        release = threading.Event()

        def slow(action, request):
            if request.principal == ALICE:
                entered.set()
                release.wait(timeout=5)
            return True

        def run(principal):
            dispatcher.dispatch(
                GATE_ACTION,
                principal,
                lambda: store.update({principal: True}),
                modules=[CallbackRule(slow)],
            )

        first = threading.Thread(target=run, args=(ALICE,))
        first.start()
        assert entered.wait(timeout=5)
        assert dispatcher.active_action is None

        second = threading.Thread(target=run, args=(BOB,))
        second.start()
        time.sleep(0.05)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert store == {ALICE: True, BOB: True}
        assert dispatcher.active_action is None


class TestBuiltinRules:
    """Tests for the bundled rule modules."""

    def test_callback_rule_action_filter(self):
        rule = CallbackRule(lambda action, request: True, actions=["follow"])
        assert rule.process("follow", _request("follow")) is True
        assert rule.process("unfollow", _request("unfollow")) is False

    def test_access_gated_rule(self, core):
        rule = AccessGatedRule()
        rule.initialize(b'{"permission": "test.permission.Read", "resource": "app:1"}')
        request = _request(access=core.access)
        assert rule.process("touch", request) is False

        core.access.grant_role(OWNER, ALICE, MODERATOR)
        core.access.set_access(OWNER, MODERATOR, "app:1", PERM_READ, AccessDecision.GRANTED)
        assert rule.process("touch", request) is True

    def test_access_gated_rule_defaults_to_primitive(self, core):
        core.access.grant_role(OWNER, ALICE, MODERATOR)
        core.access.set_access(OWNER, MODERATOR, "prim:1", PERM_READ, AccessDecision.GRANTED)
        rule = AccessGatedRule(core.access)
        rule.initialize(b'{"permission": "test.permission.Read"}')
        assert rule.process("touch", _request()) is True

    @pytest.mark.parametrize(
        "configuration",
        [b"", b"not json", b'{"resource": "app:1"}', b'{"permission": "x", "extra": 1}'],
    )
    def test_access_gated_rule_bad_configuration(self, configuration):
        rule = AccessGatedRule()
        with pytest.raises(ConfigurationError):
            rule.initialize(configuration)
        assert not rule.is_initialized

    def test_access_gated_rule_uninitialized(self, core):
        with pytest.raises(RuleRejected, match="not initialized"):
            AccessGatedRule().process("touch", _request(access=core.access))

    def test_membership_gated_rule(self, group):
        rule = MembershipGatedRule(group)
        group.join(ALICE)
        assert rule.process("touch", _request()) is True
        assert rule.process("touch", _request(principal=BOB)) is False

    def test_combined_rule_requires_all_required(self):
        rule = CombinedRule(required=[AllowAllRule(), DenyAllRule()])
        with pytest.raises(RuleRejected) as exc_info:
            rule.process("touch", _request())
        assert exc_info.value.module_name == "DenyAllRule"

    def test_combined_rule_any_of(self):
        rule = CombinedRule(required=[AllowAllRule()], any_of=[DenyAllRule(), AllowAllRule()])
        assert rule.process("touch", _request()) is True

    def test_combined_rule_no_any_of_passes(self):
        rule = CombinedRule(any_of=[DenyAllRule(), DenyAllRule()])
        with pytest.raises(RuleRejected) as exc_info:
            rule.process("touch", _request())
        assert exc_info.value.module_name == "CombinedRule"
        assert exc_info.value.details["context"]["rejected_by"] == ["DenyAllRule", "DenyAllRule"]

    def test_combined_rule_needs_modules(self):
        with pytest.raises(ConfigurationError):
            CombinedRule()

    def test_combined_rule_initializes_children(self, core):
        gate = AccessGatedRule()
        feed = core.create_feed()
        feed.set_rule_module(
            OWNER, CombinedRule(required=[gate]), b'{"permission": "test.permission.Read"}'
        )
        assert gate.permission == PERM_READ
        with pytest.raises(RuleRejected):
            feed.create_post(ALICE, "ipfs://hello")

        core.access.grant_role(OWNER, ALICE, MODERATOR)
        core.access.set_access(OWNER, MODERATOR, feed.id, PERM_READ, AccessDecision.GRANTED)
        feed.create_post(ALICE, "ipfs://hello")
        assert feed.post_count == 1

    def test_combined_rule_keeps_child_configuration(self):
        child = AccessGatedRule()
        child.initialize(b'{"permission": "test.permission.Read"}')
        sibling = AllowAllRule()
        rule = CombinedRule(required=[child], any_of=[sibling])
        rule.initialize(b'{"permission": "test.permission.Write"}')
        assert child.configuration == b'{"permission": "test.permission.Read"}'
        assert sibling.configuration == b'{"permission": "test.permission.Write"}'
        assert rule.is_initialized

    def test_combined_rule_describe(self):
        rule = CombinedRule(required=[AllowAllRule()], any_of=[DenyAllRule()])
        assert rule.describe() == {"required": ["AllowAllRule"], "any_of": ["DenyAllRule"]}
