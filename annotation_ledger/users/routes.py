"""
User administration routes.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..dependencies import get_actor
from ..policy import Actor
from .services import ProfileParams, UserService

router = APIRouter(prefix="/users", tags=["users"])


class TierChange(BaseModel):
    privs: int


class ActivationChange(BaseModel):
    activated: bool


@router.get("")
async def list_users(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return [user.to_dict() for user in UserService(db).list()]


@router.post("/{user_id}/tier")
async def change_tier(
    user_id: int,
    change: TierChange,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": UserService(db).set_tier(actor, user_id, change.privs)}


@router.post("/{user_id}/activation")
async def change_activation(
    user_id: int,
    change: ActivationChange,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": UserService(db).set_activation(actor, user_id, change.activated)}


@router.put("/{user_id}")
async def update_profile(
    user_id: int,
    params: ProfileParams,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    params = params.model_copy(update={"id": user_id})
    return {"id": UserService(db).update_profile(actor, params)}
