"""
Comment and scheme schemas.

A text's scheme is an ordered list of custom annotation fields. The value of
each field lives in the comment ``entry`` under the field id.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class FieldType(str, Enum):
    """Shape of a scheme field value inside a comment entry."""

    RICH_TEXT = "rich_text"
    PLAIN_TEXT = "plain_text"
    LIST = "list"


class SchemeField(BaseModel):
    """One custom annotation field defined on a text."""

    model_config = ConfigDict(extra="ignore")

    id: constr(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$") = Field(
        ..., description="Key of the field inside a comment entry"
    )
    title: str = Field("", description="Display label")
    type: FieldType = Field(FieldType.RICH_TEXT, description="Value shape")


class CommentParams(BaseModel):
    """Input for creating or updating a comment."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = Field(None, description="Existing comment id for updates")
    text_id: Optional[int] = Field(None, description="Annotated text")
    title: str = Field("", description="Comment title")
    published: bool = Field(False, description="Ready for publication")
    priority: Optional[float] = Field(None, description="Ordering key")
    tags: List[int] = Field(default_factory=list, description="Tag ids")
    issues: List[List[int]] = Field(
        default_factory=list,
        description="Issue references as [issue_id, ordinal, ...] lists",
    )
    entry: Optional[Dict[str, Any]] = Field(
        None, description="Scheme field values keyed by field id"
    )


class TagParams(BaseModel):
    id: Optional[int] = None
    title: constr(strip_whitespace=True, min_length=1)


class IssueParams(BaseModel):
    id: Optional[int] = None
    title: constr(strip_whitespace=True, min_length=1)
    color: str = "#000000"


class StringBinding(BaseModel):
    """Attach or detach one comment to a set of corpus positions."""

    id: int = Field(..., description="Comment id")
    tokens: List[int] = Field(default_factory=list, description="String row ids")


class StringFormat(BaseModel):
    """Format classes applied to one corpus position."""

    fmt: List[str] = Field(default_factory=list, description="CSS-like class names")
