"""
FastAPI dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .db.base import get_db
from .policy import Actor
from .users.services import UserService


def get_actor(
    x_user_id: Optional[int] = Header(None),
    db: Session = Depends(get_db),
) -> Actor:
    """Resolve the acting user placed on the request by the session layer."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    actor = UserService(db).get_actor(x_user_id)
    if actor is None:
        raise HTTPException(status_code=401, detail="Unknown or inactive user")
    return actor


def get_app_settings() -> Settings:
    return get_settings()
