"""
SQLAlchemy models for annotation-ledger.

Array-valued columns (comment tags/issues, string comments/fmt) are stored as
JSON lists so the schema works on both PostgreSQL and SQLite.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .base import Base

# Fields captured in a comment snapshot, in a stable order.
COMMENT_SNAPSHOT_FIELDS = (
    "text_id",
    "title",
    "published",
    "priority",
    "tags",
    "issues",
    "entry",
)


class TextModel(Base):
    """A document under annotation."""

    __tablename__ = "texts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    author = Column(Text, nullable=True)
    title = Column(Text, nullable=True)
    meta = Column(Text, nullable=True)
    url = Column(Text, nullable=True)
    lang = Column(String(32), nullable=False, index=True)

    # Ordered list of custom annotation field definitions
    scheme = Column(JSON, nullable=True)

    loaded = Column(Boolean, nullable=False, default=False)
    comments = Column(Boolean, nullable=False, default=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "author": self.author,
            "title": self.title,
            "meta": self.meta,
            "url": self.url,
            "lang": self.lang,
            "scheme": self.scheme or [],
            "loaded": self.loaded,
            "comments": self.comments,
        }


class TagModel(Base):
    """Shared tag vocabulary item."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title}


class IssueModel(Base):
    """Shared issue vocabulary item."""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    color = Column(String(32), nullable=False, default="#000000")
    title = Column(Text, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "color": self.color, "title": self.title}


class UserModel(Base):
    """An actor. Credentials live with the session layer, not here."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(128), nullable=False)
    firstname = Column(String(128), nullable=False, default="")
    lastname = Column(String(128), nullable=False, default="")
    email = Column(String(256), nullable=False)
    privs = Column(Integer, nullable=False, default=7)
    activated = Column(Boolean, nullable=False, default=False)
    requested = Column(DateTime(timezone=True), nullable=True)
    text_id = Column(Integer, ForeignKey("texts.id"), nullable=True)
    note = Column(Text, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "username": self.username,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "email": self.email,
            "privs": self.privs,
            "activated": self.activated,
            "requested": self.requested.isoformat() if self.requested else None,
        }


class TokenModel(Base):
    """Canonical lexical unit, unique per surface form and language."""

    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(Text, nullable=False)
    meta = Column(Text, nullable=True)
    lang = Column(String(32), nullable=True)

    __table_args__ = (UniqueConstraint("token", "lang", name="uq_tokens_token_lang"),)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "token": self.token, "meta": self.meta, "lang": self.lang}


class UnitModel(Base):
    """A disambiguated sense of a token."""

    __tablename__ = "units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(Integer, ForeignKey("tokens.id"), nullable=True)
    pos = Column(Text, nullable=True)


class CommentModel(Base):
    """An annotation attached to a text."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text_id = Column(Integer, ForeignKey("texts.id"), nullable=True, index=True)
    title = Column(Text, nullable=False)
    published = Column(Boolean, nullable=True, default=False)
    priority = Column(Float, nullable=True)

    # Tag ids
    tags = Column(JSON, nullable=False, default=list)
    # [issue_id, ordinal, ...] lists, kept verbatim
    issues = Column(JSON, nullable=False, default=list)
    entry = Column(JSON, nullable=True)

    __table_args__ = (Index("ix_comments_text_priority", "text_id", "priority"),)

    def to_snapshot(self) -> Dict[str, Any]:
        """Field state of this comment without its id."""
        return {name: getattr(self, name) for name in COMMENT_SNAPSHOT_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {"id": self.id, **self.to_snapshot()}


class StringModel(Base):
    """One corpus position of an ingested text."""

    __tablename__ = "strings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text_id = Column(Integer, ForeignKey("texts.id"), nullable=True, index=True)
    p = Column(Integer, nullable=True)
    s = Column(Integer, nullable=True)
    line = Column(Integer, nullable=True)
    form = Column(Text, nullable=True)
    repr = Column(Text, nullable=True)
    fmt = Column(JSON, nullable=False, default=list)
    token_id = Column(Integer, ForeignKey("tokens.id"), nullable=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=True)
    comments = Column(JSON, nullable=False, default=list)

    __table_args__ = (Index("ix_strings_repr", "repr"),)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "text_id": self.text_id,
            "p": self.p,
            "s": self.s,
            "line": self.line,
            "form": self.form,
            "repr": self.repr,
            "fmt": self.fmt or [],
            "token_id": self.token_id,
            "unit_id": self.unit_id,
            "comments": self.comments or [],
        }
