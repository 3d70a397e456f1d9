"""
Annotation Service Layer.

Owns the comment lifecycle and the shared tag/issue vocabulary. Every comment
mutation is written together with its revision log entry in one transaction:
either both become visible or neither does.
"""

import copy
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import String, cast, desc, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db.models import CommentModel, IssueModel, StringModel, TagModel, TextModel
from ..db.revision_log import RevisionLog
from ..errors import (
    AnnotationError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from ..policy import Action, Actor, require
from .schemas import CommentParams, IssueParams, TagParams

logger = structlog.get_logger()

# Characters allowed in a title search chunk
_SEARCH_CHUNK_STRIP = re.compile(r"[^0-9А-Яа-яЎІЁўіёA-Za-z*-]")


@dataclass(frozen=True)
class CommentWriteResult:
    """Id of the written comment and of its paired log entry."""

    id: int
    log_entry_id: int

    def to_dict(self) -> Dict[str, int]:
        return {"id": self.id, "change": self.log_entry_id}


class CommentStore:
    """Service for creating, updating and reading comments."""

    def __init__(
        self,
        db: Session,
        revisions: Optional[RevisionLog] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.revisions = revisions or RevisionLog(db, self.settings)

    def _validate(self, params: CommentParams) -> str:
        title = (params.title or "").strip()
        if not title:
            raise ValidationError(
                "Comment title must not be empty", details={"field": "title"}
            )
        if not params.text_id:
            raise ValidationError(
                "Comment must reference a text", details={"field": "text_id"}
            )
        if self.db.get(TextModel, params.text_id) is None:
            raise ValidationError(
                f"Text {params.text_id} does not exist", details={"field": "text_id"}
            )
        return title

    def upsert_comment(self, actor: Actor, params: CommentParams) -> CommentWriteResult:
        """Create or update a comment and append its revision log entry.

        Args:
            actor: User performing the change
            params: New comment values; ``params.id`` selects an update

        Returns:
            The comment id and the id of the paired log entry

        Raises:
            AuthorizationError: The actor may not edit comments
            ValidationError: Title or text reference is missing
            NotFoundError: ``params.id`` does not exist
            ConflictError: A constraint rejected the write
            StorageError: The store failed; nothing was committed
        """
        require(actor, Action.EDIT_COMMENT)
        title = self._validate(params)

        op_logger = logger.bind(actor_id=actor.id, comment_id=params.id)
        before: Dict[str, Any] = {}
        after: Dict[str, Any] = {}

        try:
            if params.id:
                row = self.db.get(CommentModel, params.id)
                if row is None:
                    raise NotFoundError(f"Comment {params.id} not found")
                before = copy.deepcopy(row.to_snapshot())
            else:
                row = CommentModel()
                self.db.add(row)

            row.text_id = params.text_id
            row.title = title
            row.published = params.published
            row.priority = params.priority
            row.tags = list(dict.fromkeys(params.tags))
            row.issues = [list(issue) for issue in params.issues]
            row.entry = copy.deepcopy(params.entry)
            self.db.flush()

            after = copy.deepcopy(row.to_snapshot())
            log_entry_id = self.revisions.append(actor, "comments", row.id, before, after)
            self.db.commit()
        except AnnotationError:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            op_logger.error("comment_upsert_conflict", error=str(exc.orig))
            raise ConflictError(
                "Comment violates a constraint",
                details={"before": before, "after": after},
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            op_logger.error("comment_upsert_failed", error=str(exc))
            raise StorageError(
                "Comment could not be saved",
                details={"before": before, "after": after},
            ) from exc

        op_logger.info(
            "comment_upserted",
            comment_id=row.id,
            log_entry_id=log_entry_id,
            created=not before,
        )
        return CommentWriteResult(id=row.id, log_entry_id=log_entry_id)

    def get(self, comment_id: int) -> CommentModel:
        """Get a comment by id."""
        row = self.db.get(CommentModel, comment_id)
        if row is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        return row

    def bound_comment_ids(self, text_id: int) -> set:
        """Ids of comments referenced by at least one string of the text."""
        bound = set()
        for (comments,) in self.db.query(StringModel.comments).filter(
            StringModel.text_id == text_id
        ):
            bound.update(comments or [])
        return bound

    def list_comments(self, text_id: int) -> List[Dict[str, Any]]:
        """List a text's comments by descending priority, then descending id.

        Each row carries a ``bound`` flag: true when any string references it.
        """
        rows = (
            self.db.query(CommentModel)
            .filter(CommentModel.text_id == text_id)
            .order_by(desc(CommentModel.priority).nulls_last(), desc(CommentModel.id))
            .all()
        )
        bound = self.bound_comment_ids(text_id)
        return [
            {
                "id": row.id,
                "priority": row.priority,
                "issues": row.issues or [],
                "tags": row.tags or [],
                "title": row.title,
                "published": bool(row.published),
                "bound": row.id in bound,
            }
            for row in rows
        ]

    def bound_comments(self, text_id: int) -> List[Dict[str, Any]]:
        """Comments of a text referenced by at least one string, by id."""
        bound = set()
        for (comments,) in self.db.query(StringModel.comments):
            bound.update(comments or [])
        if not bound:
            return []
        rows = (
            self.db.query(CommentModel.id, CommentModel.title)
            .filter(CommentModel.text_id == text_id, CommentModel.id.in_(sorted(bound)))
            .order_by(CommentModel.id)
            .all()
        )
        return [{"id": r.id, "title": r.title} for r in rows]

    def full_comments(self, text_id: int, published_only: bool = False) -> List[CommentModel]:
        """Comments of a text in reading order (ascending priority, then id)."""
        query = self.db.query(CommentModel).filter(CommentModel.text_id == text_id)
        if published_only:
            query = query.filter(CommentModel.published.is_(True))
        return query.order_by(
            CommentModel.priority.asc().nulls_last(), CommentModel.id.asc()
        ).all()

    def next_priority(self, text_id: int) -> float:
        """Priority that places a new comment after every existing one."""
        highest = (
            self.db.query(func.max(CommentModel.priority))
            .filter(CommentModel.text_id == text_id)
            .scalar()
        )
        if highest is None:
            return 1.0
        return float(math.floor(highest) + 1)

    def search_titles(self, text_id: int, chunk: str) -> List[Dict[str, Any]]:
        """Find up to ten comments whose title contains ``chunk`` or whose
        priority starts with it.

        Returns an empty list when the chunk is empty after sanitizing or the
        query fails.
        """
        checked = _SEARCH_CHUNK_STRIP.sub("", str(chunk or ""))
        if not checked:
            return []
        try:
            rows = (
                self.db.query(CommentModel.id, CommentModel.priority, CommentModel.title)
                .filter(
                    CommentModel.text_id == text_id,
                    or_(
                        CommentModel.title.ilike(f"%{checked}%"),
                        cast(CommentModel.priority, String).like(f"{checked}%"),
                    ),
                )
                .limit(10)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("comment_title_search_failed", text_id=text_id, error=str(exc))
            self.db.rollback()
            return []
        return [{"id": r.id, "priority": r.priority, "title": r.title} for r in rows]


def _commit(db: Session, what: str) -> None:
    """Commit or roll back and translate the store failure."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"{what} violates a constraint") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"{what} could not be saved") from exc


class TagService:
    """Service for the shared tag vocabulary."""

    def __init__(self, db: Session):
        self.db = db

    def list(self) -> List[TagModel]:
        return self.db.query(TagModel).order_by(desc(TagModel.id)).all()

    def set_tag(self, actor: Actor, params: TagParams) -> int:
        """Create or rename a tag."""
        require(actor, Action.EDIT_TAG)
        if params.id:
            tag = self.db.get(TagModel, params.id)
            if tag is None:
                raise NotFoundError(f"Tag {params.id} not found")
        else:
            tag = TagModel()
            self.db.add(tag)
        tag.title = params.title
        _commit(self.db, "Tag")
        return tag.id

    def usage(self, tag_id: int) -> int:
        """Number of comments referencing the tag."""
        return sum(
            1 for (tags,) in self.db.query(CommentModel.tags) if tag_id in (tags or [])
        )

    def delete_tag(self, actor: Actor, tag_id: int) -> int:
        """Delete an unreferenced tag.

        Raises:
            ConflictError: Comments still reference the tag
        """
        require(actor, Action.EDIT_TAG)
        used = self.usage(tag_id)
        if used:
            raise ConflictError(
                f"Tag {tag_id} is used by {used} comment(s)",
                details={"id": tag_id, "comments": used},
            )
        tag = self.db.get(TagModel, tag_id)
        if tag is None:
            raise NotFoundError(f"Tag {tag_id} not found")
        self.db.delete(tag)
        _commit(self.db, "Tag")
        logger.info("tag_deleted", tag_id=tag_id, actor_id=actor.id)
        return tag_id


class IssueService:
    """Service for the shared issue vocabulary."""

    def __init__(self, db: Session):
        self.db = db

    def list(self) -> List[IssueModel]:
        return self.db.query(IssueModel).order_by(desc(IssueModel.id)).all()

    def set_issue(self, actor: Actor, params: IssueParams) -> int:
        """Create or update an issue."""
        require(actor, Action.EDIT_ISSUE)
        if params.id:
            issue = self.db.get(IssueModel, params.id)
            if issue is None:
                raise NotFoundError(f"Issue {params.id} not found")
        else:
            issue = IssueModel()
            self.db.add(issue)
        issue.title = params.title
        issue.color = params.color
        _commit(self.db, "Issue")
        return issue.id

    def usage(self, issue_id: int) -> int:
        """Number of comments referencing the issue."""
        return sum(
            1
            for (issues,) in self.db.query(CommentModel.issues)
            if any(ref and ref[0] == issue_id for ref in (issues or []))
        )

    def delete_issue(self, actor: Actor, issue_id: int) -> int:
        """Delete an unreferenced issue.

        Raises:
            ConflictError: Comments still reference the issue
        """
        require(actor, Action.EDIT_ISSUE)
        used = self.usage(issue_id)
        if used:
            raise ConflictError(
                f"Issue {issue_id} is used by {used} comment(s)",
                details={"id": issue_id, "comments": used},
            )
        issue = self.db.get(IssueModel, issue_id)
        if issue is None:
            raise NotFoundError(f"Issue {issue_id} not found")
        self.db.delete(issue)
        _commit(self.db, "Issue")
        logger.info("issue_deleted", issue_id=issue_id, actor_id=actor.id)
        return issue_id


class StringBindingService:
    """Attaches comments to corpus positions."""

    def __init__(self, db: Session):
        self.db = db

    def _strings(self, string_ids: Iterable[int]) -> List[StringModel]:
        ids = list(string_ids)
        if not ids:
            return []
        return self.db.query(StringModel).filter(StringModel.id.in_(ids)).all()

    def bind_comment(self, actor: Actor, comment_id: int, string_ids: Iterable[int]) -> List[int]:
        """Bind a comment to strings; a string never lists a comment twice."""
        require(actor, Action.BIND_STRINGS)
        rows = self._strings(string_ids)
        for row in rows:
            row.comments = [c for c in (row.comments or []) if c != comment_id] + [comment_id]
        _commit(self.db, "String binding")
        return [row.id for row in rows]

    def unbind_comment(self, actor: Actor, comment_id: int, string_ids: Iterable[int]) -> List[int]:
        """Remove a comment from strings."""
        require(actor, Action.BIND_STRINGS)
        rows = self._strings(string_ids)
        for row in rows:
            row.comments = [c for c in (row.comments or []) if c != comment_id]
        _commit(self.db, "String binding")
        return [row.id for row in rows]

    def set_string_comments(self, actor: Actor, string_id: int, comment_ids: Iterable[int]) -> int:
        """Replace the comment list of one string."""
        require(actor, Action.BIND_STRINGS)
        row = self.db.get(StringModel, string_id)
        if row is None:
            raise NotFoundError(f"String {string_id} not found")
        row.comments = [int(c) for c in comment_ids]
        _commit(self.db, "String binding")
        return row.id

    def set_string_format(self, actor: Actor, string_id: int, fmt: Iterable[str]) -> int:
        """Replace the format classes of one string."""
        require(actor, Action.BIND_STRINGS)
        row = self.db.get(StringModel, string_id)
        if row is None:
            raise NotFoundError(f"String {string_id} not found")
        row.fmt = [str(cls) for cls in fmt]
        _commit(self.db, "String format")
        return row.id

    def bound_strings(self, text_id: int, comment_id: int) -> List[StringModel]:
        """Strings of a text that reference the comment, in corpus order."""
        rows = (
            self.db.query(StringModel)
            .filter(StringModel.text_id == text_id)
            .order_by(StringModel.id)
            .all()
        )
        return [row for row in rows if comment_id in (row.comments or [])]
