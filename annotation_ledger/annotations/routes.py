"""
Annotation API Routes.

Comments, the tag/issue vocabulary, string bindings and the revision log.
Domain errors are turned into responses by the application's exception
handler.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import Settings
from ..corpus.texts import TextService
from ..db.base import get_db
from ..db.revision_log import LogFilter, RevisionLog
from ..dependencies import get_actor, get_app_settings
from ..policy import Actor
from .schemas import CommentParams, IssueParams, StringBinding, StringFormat, TagParams
from .services import CommentStore, IssueService, StringBindingService, TagService

router = APIRouter(tags=["annotations"])


# =============================================================================
# Comment Endpoints
# =============================================================================


@router.get("/comments")
async def list_comments(
    text_id: int,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """List a text's comments, highest priority first."""
    return CommentStore(db).list_comments(text_id)


@router.get("/comments/next-priority")
async def next_priority(text_id: int, db: Session = Depends(get_db)) -> Dict[str, float]:
    return {"priority": CommentStore(db).next_priority(text_id)}


@router.get("/comments/search")
async def search_comments(
    text_id: int,
    chunk: str = "",
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    return CommentStore(db).search_titles(text_id, chunk)


@router.get("/comments/bound")
async def bound_comments(text_id: int, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    """Comments of a text attached to at least one string."""
    return CommentStore(db).bound_comments(text_id)


@router.get("/comments/{comment_id}")
async def get_comment(comment_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return CommentStore(db).get(comment_id).to_dict()


@router.post("/comments")
async def upsert_comment(
    params: CommentParams,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Create or update a comment; returns its id and the log entry id."""
    result = CommentStore(db, settings=settings).upsert_comment(actor, params)
    return result.to_dict()


# =============================================================================
# String Binding Endpoints
# =============================================================================


@router.post("/comments/bind")
async def bind_comment(
    binding: StringBinding,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> List[int]:
    return StringBindingService(db).bind_comment(actor, binding.id, binding.tokens)


@router.post("/comments/unbind")
async def unbind_comment(
    binding: StringBinding,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> List[int]:
    return StringBindingService(db).unbind_comment(actor, binding.id, binding.tokens)


@router.get("/strings/range")
async def strings_range(
    first: int,
    last: Optional[int] = None,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    return TextService(db).strings_range(first, last)


@router.post("/strings/{string_id}/format")
async def set_string_format(
    string_id: int,
    params: StringFormat,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": StringBindingService(db).set_string_format(actor, string_id, params.fmt)}


# =============================================================================
# Tag and Issue Endpoints
# =============================================================================


@router.get("/tags")
async def list_tags(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return [tag.to_dict() for tag in TagService(db).list()]


@router.post("/tags")
async def set_tag(
    params: TagParams,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": TagService(db).set_tag(actor, params)}


@router.delete("/tags/{tag_id}")
async def delete_tag(
    tag_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"id": TagService(db).delete_tag(actor, tag_id), "success": True}


@router.get("/issues")
async def list_issues(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return [issue.to_dict() for issue in IssueService(db).list()]


@router.post("/issues")
async def set_issue(
    params: IssueParams,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": IssueService(db).set_issue(actor, params)}


@router.delete("/issues/{issue_id}")
async def delete_issue(
    issue_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"id": IssueService(db).delete_issue(actor, issue_id), "success": True}


# =============================================================================
# Revision Log Endpoints
# =============================================================================


@router.get("/logs")
async def list_logs(
    text_id: Optional[int] = None,
    comment_id: Optional[int] = None,
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Page through the revision log, newest first."""
    log_filter = LogFilter(text_id=text_id, record_id=comment_id)
    return RevisionLog(db, settings).list(log_filter, offset=offset, limit=limit).to_dict()


@router.get("/logs/history/{table}/{record_id}")
async def record_history(
    table: str,
    record_id: int,
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    return RevisionLog(db).history(table, record_id, limit)


@router.get("/logs/{log_id}")
async def get_log(log_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Get one log entry with the labels of the fields it changed."""
    return RevisionLog(db).review(log_id)
