"""
Configuration for a rulegate deployment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from rulegate.exceptions import ConfigurationError
from rulegate.types import is_zero_principal


@dataclass
class CoreConfig:
    """
    Configuration for a Core.

    Attributes:
        owner: Principal that receives the Owner role at construction.
        id_namespace: Namespace of generated ids; keep it distinct per
            deployment so ids never collide across deployments.
        reentrancy_guard: Refuse state-changing calls made by rule modules
            back into the primitive they are guarding.
        log_events: Attach a LoggingEventHook to the event bus.
        event_log_level: Level used by that hook.
    """

    owner: str
    id_namespace: str = "rulegate"
    reentrancy_guard: bool = True
    log_events: bool = False
    event_log_level: int = logging.DEBUG

    def __post_init__(self) -> None:
        """Validate the configuration."""
        if is_zero_principal(self.owner):
            raise ConfigurationError("owner", expected="a non-empty principal", received=self.owner)
        if not self.id_namespace or ":" in self.id_namespace:
            raise ConfigurationError(
                "id_namespace",
                expected="a non-empty string without ':'",
                received=self.id_namespace,
            )

    @classmethod
    def default(cls, owner: str) -> CoreConfig:
        """Create default configuration for an owner."""
        return cls(owner=owner)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "owner": self.owner,
            "id_namespace": self.id_namespace,
            "reentrancy_guard": self.reentrancy_guard,
            "log_events": self.log_events,
            "event_log_level": self.event_log_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoreConfig:
        """Create config from dictionary."""
        if "owner" not in data:
            raise ConfigurationError("owner", reason="missing required key")
        return cls(
            owner=data["owner"],
            id_namespace=data.get("id_namespace", "rulegate"),
            reentrancy_guard=data.get("reentrancy_guard", True),
            log_events=data.get("log_events", False),
            event_log_level=data.get("event_log_level", logging.DEBUG),
        )
