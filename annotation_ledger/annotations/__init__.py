"""
Comments, their scheme-driven fields and the snapshot differ.

Services and routes are imported from their modules directly.
"""

from .differ import CREATED, diff, rules_for_scheme
from .schemas import CommentParams, FieldType, IssueParams, SchemeField, TagParams

__all__ = [
    "CREATED",
    "CommentParams",
    "FieldType",
    "IssueParams",
    "SchemeField",
    "TagParams",
    "diff",
    "rules_for_scheme",
]
