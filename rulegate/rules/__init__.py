"""
Rule modules and their dispatch.

Primitives attach rule modules to veto or react to state-changing actions.
The RuleDispatcher runs each action under the Gate or Notify discipline
and unwinds the whole action when a module vetoes.
"""

from rulegate.rules.base import Discipline, RuleModule, RuleRequest
from rulegate.rules.builtin import (
    AccessGatedConfig,
    AccessGatedRule,
    AllowAllRule,
    CallbackRule,
    CombinedRule,
    DenyAllRule,
    MembershipGatedRule,
)
from rulegate.rules.dispatcher import ActionSpec, RuleDispatcher, run_hook

__all__ = [
    "ActionSpec",
    "Discipline",
    "RuleDispatcher",
    "RuleModule",
    "RuleRequest",
    "run_hook",
    "AccessGatedConfig",
    "AccessGatedRule",
    "AllowAllRule",
    "CallbackRule",
    "CombinedRule",
    "DenyAllRule",
    "MembershipGatedRule",
]
