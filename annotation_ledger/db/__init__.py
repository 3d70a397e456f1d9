"""
Database package for annotation-ledger.
"""

from .base import Base, get_db, get_engine, init_database, session_scope
from .log_models import LogEntryModel
from .models import (
    CommentModel,
    IssueModel,
    StringModel,
    TagModel,
    TextModel,
    TokenModel,
    UnitModel,
    UserModel,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "init_database",
    "session_scope",
    "CommentModel",
    "IssueModel",
    "LogEntryModel",
    "StringModel",
    "TagModel",
    "TextModel",
    "TokenModel",
    "UnitModel",
    "UserModel",
]
