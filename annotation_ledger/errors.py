"""
Error taxonomy for annotation-ledger.

Every error carries a stable code for programmatic handling and converts to a
dict for JSON responses. Validation and authorization errors are raised before
any transaction is opened; storage errors are raised after a rollback.
"""

from typing import Any, Dict, Optional


class AnnotationError(Exception):
    """Base class for all annotation-ledger errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
        details: Optional diagnostic payload (e.g. before/after snapshots)
    """

    code = "ANNOTATION_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if code:
            self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        data: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(AnnotationError):
    """A required field is missing or malformed."""

    code = "VALIDATION_FAILED"
    status_code = 422


class AuthorizationError(AnnotationError):
    """The actor's tier forbids the requested action."""

    code = "NOT_AUTHORIZED"
    status_code = 403


class NotFoundError(AnnotationError):
    """A referenced record does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(AnnotationError):
    """A uniqueness or reference constraint blocks the operation."""

    code = "CONFLICT"
    status_code = 409


class StorageError(AnnotationError):
    """The store failed; the enclosing transaction was rolled back."""

    code = "STORAGE_FAILURE"
    status_code = 500


class IngestionError(StorageError):
    """A corpus ingestion failed and nothing of it was committed."""

    code = "INGESTION_FAILED"
