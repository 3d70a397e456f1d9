"""
Access gate for mutating operations.

A pure privilege check consulted before every mutating entry point. It never
touches the store; callers pass in the already-resolved actor.

Tiers:
- 1 (administrator): everything, including user activation, tier changes,
  password resets and global settings
- 5 (editor): structural content (comments, tags, issues, texts, ingestion,
  string binding)
- 7 (observer): only their own profile

Rules that do not depend on tier:
- a deactivated actor is denied everything
- any actor may edit their own profile
- nobody may change their own activation status
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..errors import AuthorizationError


class Tier(IntEnum):
    """User privilege tiers; a lower value means more privilege."""

    ADMIN = 1
    EDITOR = 5
    OBSERVER = 7


VALID_TIERS = {t.value for t in Tier}


class Action(str, Enum):
    """Mutating actions guarded by the gate."""

    SET_ACTIVATION = "set_activation"
    CHANGE_TIER = "change_tier"
    RESET_PASSWORD = "reset_password"
    EDIT_SETTINGS = "edit_settings"
    EDIT_COMMENT = "edit_comment"
    EDIT_TAG = "edit_tag"
    EDIT_ISSUE = "edit_issue"
    EDIT_TEXT = "edit_text"
    INGEST_TEXT = "ingest_text"
    BIND_STRINGS = "bind_strings"
    EDIT_PROFILE = "edit_profile"


ADMIN_ACTIONS = {
    Action.SET_ACTIVATION,
    Action.CHANGE_TIER,
    Action.RESET_PASSWORD,
    Action.EDIT_SETTINGS,
}

EDITOR_ACTIONS = {
    Action.EDIT_COMMENT,
    Action.EDIT_TAG,
    Action.EDIT_ISSUE,
    Action.EDIT_TEXT,
    Action.INGEST_TEXT,
    Action.BIND_STRINGS,
}


class Actor(BaseModel):
    """The authenticated user performing an operation."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    privs: int = Tier.OBSERVER
    activated: bool = True
    username: Optional[str] = None


def authorize(
    actor: Actor, action: Action, target_user_id: Optional[int] = None
) -> bool:
    """Return whether ``actor`` may perform ``action``.

    ``target_user_id`` is the user affected by a user-administration action;
    it is ignored for content actions.
    """
    if not actor.activated:
        return False

    if action == Action.SET_ACTIVATION and target_user_id == actor.id:
        return False

    if action == Action.EDIT_PROFILE:
        return target_user_id == actor.id or actor.privs == Tier.ADMIN

    if action in ADMIN_ACTIONS:
        return actor.privs == Tier.ADMIN

    if action in EDITOR_ACTIONS:
        return actor.privs <= Tier.EDITOR

    return False


def require(
    actor: Actor, action: Action, target_user_id: Optional[int] = None
) -> None:
    """Raise AuthorizationError unless ``actor`` may perform ``action``."""
    if not authorize(actor, action, target_user_id):
        raise AuthorizationError(
            f"User {actor.id} (tier {actor.privs}) may not perform '{action.value}'",
            details={"action": action.value, "target_user_id": target_user_id},
        )
