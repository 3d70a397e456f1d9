"""Privilege checks for mutating operations."""

from .access_gate import (
    ADMIN_ACTIONS,
    EDITOR_ACTIONS,
    VALID_TIERS,
    Action,
    Actor,
    Tier,
    authorize,
    require,
)

__all__ = [
    "ADMIN_ACTIONS",
    "EDITOR_ACTIONS",
    "VALID_TIERS",
    "Action",
    "Actor",
    "Tier",
    "authorize",
    "require",
]
