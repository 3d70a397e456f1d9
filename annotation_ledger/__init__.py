"""
Annotation Ledger

Revision-tracked comment store and corpus ingestion for collaborative text
annotation.
"""

import importlib.metadata

__version__ = importlib.metadata.version("annotation-ledger")

from .annotations.differ import diff
from .errors import (
    AnnotationError,
    AuthorizationError,
    ConflictError,
    IngestionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .policy import Action, Actor, Tier, authorize

__all__ = [
    "Action",
    "Actor",
    "AnnotationError",
    "AuthorizationError",
    "ConflictError",
    "IngestionError",
    "NotFoundError",
    "StorageError",
    "Tier",
    "ValidationError",
    "authorize",
    "diff",
]
