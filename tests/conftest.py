"""
Pytest fixtures for rulegate tests.

Provides common fixtures used across all test modules.
"""

from __future__ import annotations

import pytest

from rulegate import (
    Core,
    CoreConfig,
    InMemoryEventHook,
    PermissionId,
    RoleBasedAccessControl,
    RuleModule,
    RuleRequest,
    StateContainer,
    derive_id,
)

OWNER = "0xowner"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"

MODERATOR = derive_id("test.role.Moderator")
EDITOR = derive_id("test.role.Editor")

PERM_READ = PermissionId.named("test.permission.Read")
PERM_WRITE = PermissionId.named("test.permission.Write")


class RecordingRule(RuleModule):
    """Rule module that records every request and returns a fixed verdict."""

    def __init__(self, verdict: bool = True, observe=None) -> None:
        super().__init__()
        self.verdict = verdict
        self.observe = observe
        self.requests: list[RuleRequest] = []
        self.observations: list = []

    def process(self, action: str, request: RuleRequest) -> bool:
        self.requests.append(request)
        if self.observe is not None:
            self.observations.append(self.observe(request))
        return self.verdict

    @property
    def actions(self) -> list[str]:
        return [r.action for r in self.requests]


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def recorder() -> InMemoryEventHook:
    """Event hook recording every committed change."""
    return InMemoryEventHook()


@pytest.fixture
def core(recorder: InMemoryEventHook) -> Core:
    """A fresh deployment owned by OWNER, with an event recorder attached."""
    core = Core(CoreConfig(owner=OWNER, id_namespace="test"))
    core.events.add_hook(recorder)
    return core


@pytest.fixture
def access(core: Core) -> RoleBasedAccessControl:
    """The root access control of the core."""
    return core.access


@pytest.fixture
def state() -> StateContainer:
    """A standalone state container."""
    return StateContainer()


# ============================================================================
# Primitive Fixtures
# ============================================================================


@pytest.fixture
def feed(core: Core):
    return core.create_feed()


@pytest.fixture
def graph(core: Core):
    return core.create_graph()


@pytest.fixture
def group(core: Core):
    return core.create_group()


@pytest.fixture
def app(core: Core):
    return core.create_app()
