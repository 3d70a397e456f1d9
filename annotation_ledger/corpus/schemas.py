"""
Corpus schemas.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

from ..annotations.schemas import SchemeField


class TokenRecord(BaseModel):
    """One position of a tokenized document.

    ``repr`` is the canonical surface form used for token deduplication; it
    defaults to ``form``.
    """

    model_config = ConfigDict(extra="ignore")

    p: Optional[int] = Field(None, description="Paragraph number")
    s: Optional[int] = Field(None, description="Sentence number")
    line: Optional[int] = Field(None, description="Line number")
    form: str = Field(..., description="Surface form as it appears in the text")
    repr: Optional[str] = Field(None, description="Canonical form")
    meta: Optional[str] = Field(None, description="Part-of-speech or class metadata")

    @model_validator(mode="after")
    def _default_repr(self) -> "TokenRecord":
        if self.repr is None:
            self.repr = self.form
        return self


class TextParams(BaseModel):
    """Input for creating or updating a text."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    author: constr(strip_whitespace=True, min_length=1)
    title: constr(strip_whitespace=True, min_length=1)
    lang: constr(strip_whitespace=True, min_length=1)
    meta: str = ""
    url: str = ""
    comments: bool = False


class SchemeParams(BaseModel):
    """Replacement scheme for a text."""

    scheme: List[SchemeField] = Field(default_factory=list)
