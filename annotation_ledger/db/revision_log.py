"""
Revision Log Service.

Appends paired before/after snapshots for mutated records and serves the
history views. ``append`` only flushes: the caller owns the transaction, so a
failed insert surfaces as the rollback cause of the enclosing mutation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import and_, desc, func, or_
from sqlalchemy.orm import Session

from ..annotations.differ import diff, rules_for_scheme
from ..config import Settings, get_settings
from ..errors import NotFoundError, ValidationError
from ..policy import Action, Actor, require
from .log_models import LogEntryModel
from .models import CommentModel, TextModel

logger = structlog.get_logger()

# Which gate action covers writing a log entry for a given table
TABLE_ACTIONS = {
    "comments": Action.EDIT_COMMENT,
    "tags": Action.EDIT_TAG,
    "issues": Action.EDIT_ISSUE,
    "texts": Action.EDIT_TEXT,
    "strings": Action.BIND_STRINGS,
    "tokens": Action.INGEST_TEXT,
    "units": Action.INGEST_TEXT,
    "users": Action.CHANGE_TIER,
}


@dataclass(frozen=True)
class LogFilter:
    """Optional predicates for log listings.

    A record belongs to a text when either its before or its after snapshot
    references that text, so deleted or moved records still show up under the
    text they came from.
    """

    text_id: Optional[int] = None
    record_id: Optional[int] = None
    table_name: Optional[str] = None

    def predicates(self) -> List[Any]:
        clauses: List[Any] = []
        if self.record_id:
            clauses.append(LogEntryModel.record_id == self.record_id)
        if self.table_name:
            clauses.append(LogEntryModel.table_name == self.table_name)
        if self.text_id:
            clauses.append(
                or_(
                    LogEntryModel.data0["text_id"].as_integer() == self.text_id,
                    LogEntryModel.data1["text_id"].as_integer() == self.text_id,
                )
            )
        return clauses


@dataclass
class LogPage:
    """One page of log entries plus the total under the same filter."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"rows": self.rows, "count": self.count}


class RevisionLog:
    """Service for the append-only revision log.

    Usage:
        log = RevisionLog(db_session)
        entry_id = log.append(actor, "comments", comment.id, before, after)
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def append(
        self,
        actor: Actor,
        table: str,
        record_id: int,
        before: Optional[Dict[str, Any]],
        after: Dict[str, Any],
    ) -> int:
        """Record a (before, after) pair inside the caller's transaction.

        Args:
            actor: User performing the mutation
            table: Table name of the mutated record
            record_id: Id of the mutated record
            before: Prior snapshot, empty for a creation
            after: New snapshot

        Returns:
            Id of the created log entry

        Raises:
            ValidationError: ``table`` is not a logged table
            AuthorizationError: The actor may not mutate ``table``
        """
        action = TABLE_ACTIONS.get(table)
        if action is None:
            raise ValidationError(
                f"Table '{table}' is not tracked by the revision log",
                details={"table": table},
            )
        require(actor, action, record_id if table == "users" else None)

        entry = LogEntryModel(
            created=datetime.now(timezone.utc),
            user_id=actor.id,
            table_name=table,
            record_id=record_id,
            data0=before or {},
            data1=after,
        )
        self.db.add(entry)
        self.db.flush()
        return entry.id

    # Query methods

    def list(
        self,
        log_filter: Optional[LogFilter] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> LogPage:
        """Page through log entries, newest first.

        Ties on ``created`` are broken by descending id so pagination is
        stable. Each row carries a ``present`` flag telling whether the
        referenced comment still exists.
        """
        log_filter = log_filter or LogFilter()
        limit = limit or self.settings.log_page_limit
        clauses = log_filter.predicates()

        rows = (
            self.db.query(LogEntryModel, CommentModel.id)
            .outerjoin(
                CommentModel,
                and_(
                    LogEntryModel.table_name == "comments",
                    LogEntryModel.record_id == CommentModel.id,
                ),
            )
            .filter(*clauses)
            .order_by(desc(LogEntryModel.created), desc(LogEntryModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        count = (
            self.db.query(func.count(LogEntryModel.id)).filter(*clauses).scalar() or 0
        )

        return LogPage(
            rows=[{**entry.to_dict(), "present": cid is not None} for entry, cid in rows],
            count=int(count),
        )

    def get(self, log_id: int) -> LogEntryModel:
        """Get a log entry by id."""
        entry = self.db.get(LogEntryModel, log_id)
        if entry is None:
            raise NotFoundError(f"Log entry {log_id} not found")
        return entry

    def review(self, log_id: int) -> Dict[str, Any]:
        """Get a log entry together with its changed-field labels.

        Scheme fields are compared with the rules of the text referenced by
        the snapshots.
        """
        entry = self.get(log_id)
        data0 = entry.data0 or {}
        data1 = entry.data1 or {}
        text_id = data1.get("text_id") or data0.get("text_id")
        text = self.db.get(TextModel, text_id) if text_id else None
        rules = rules_for_scheme(text.scheme if text else None)
        return {**entry.to_dict(), "changes": diff(data0, data1, rules)}

    def history(
        self,
        table: str,
        record_id: int,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Get the log history of one record, most recent first.

        Each row tells whether it is the record's creation event.
        """
        query = (
            self.db.query(LogEntryModel)
            .filter(
                LogEntryModel.table_name == table,
                LogEntryModel.record_id == record_id,
            )
            .order_by(desc(LogEntryModel.created), desc(LogEntryModel.id))
        )
        if limit:
            query = query.limit(limit)

        return [
            {
                "id": entry.id,
                "user_id": entry.user_id,
                "created": entry.created.isoformat() if entry.created else None,
                "init": entry.is_creation,
            }
            for entry in query.all()
        ]
