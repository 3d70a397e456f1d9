"""
User administration.

Tier and activation changes are administrator-only; profile edits are open to
the user themselves. Credentials and sessions are handled elsewhere.
"""

from typing import List, Optional

import structlog
from pydantic import BaseModel, constr
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import UserModel
from ..errors import ConflictError, NotFoundError, StorageError
from ..policy import VALID_TIERS, Action, Actor, Tier, require

logger = structlog.get_logger()


class ProfileParams(BaseModel):
    id: int
    username: constr(strip_whitespace=True, min_length=1, max_length=128)
    firstname: constr(strip_whitespace=True, max_length=128) = ""
    lastname: constr(strip_whitespace=True, max_length=128) = ""
    email: constr(strip_whitespace=True, min_length=3, max_length=256)


class UserService:
    """Service for managing users."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> UserModel:
        user = self.db.get(UserModel, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def get_actor(self, user_id: int) -> Optional[Actor]:
        """Resolve an active user into an Actor, or None."""
        user = self.db.get(UserModel, user_id)
        if user is None or not user.activated:
            return None
        return Actor.model_validate(user)

    def list(self) -> List[UserModel]:
        return (
            self.db.query(UserModel)
            .order_by(desc(UserModel.requested).nulls_last(), UserModel.id)
            .all()
        )

    def set_tier(self, actor: Actor, user_id: int, privs: int) -> int:
        """Change a user's tier; unknown tiers fall back to observer."""
        require(actor, Action.CHANGE_TIER, user_id)
        tier = int(privs) if int(privs) in VALID_TIERS else int(Tier.OBSERVER)
        user = self.get(user_id)
        user.privs = tier
        self._commit("Tier change")
        logger.info("user_tier_changed", user_id=user_id, privs=tier, actor_id=actor.id)
        return user.id

    def set_activation(self, actor: Actor, user_id: int, activated: bool) -> int:
        """Activate or deactivate another user."""
        require(actor, Action.SET_ACTIVATION, user_id)
        user = self.get(user_id)
        user.activated = bool(activated)
        self._commit("Activation change")
        logger.info(
            "user_activation_changed",
            user_id=user_id,
            activated=user.activated,
            actor_id=actor.id,
        )
        return user.id

    def update_profile(self, actor: Actor, params: ProfileParams) -> int:
        """Update names and contact data.

        Raises:
            ConflictError: Another user already has the email or username
        """
        require(actor, Action.EDIT_PROFILE, params.id)
        username = params.username.lower()
        email = str(params.email).lower()

        others = self.db.query(UserModel).filter(UserModel.id != params.id)
        if others.filter(UserModel.email == email).first():
            raise ConflictError("email not unique", details={"field": "email"})
        if others.filter(UserModel.username == username).first():
            raise ConflictError("username not unique", details={"field": "username"})

        user = self.get(params.id)
        user.username = username
        user.email = email
        user.firstname = params.firstname.capitalize()
        user.lastname = params.lastname.capitalize()
        self._commit("Profile")
        return user.id

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"{what} could not be saved") from exc
