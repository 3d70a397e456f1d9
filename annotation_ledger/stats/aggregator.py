"""
Stats aggregator.

Read-only progress figures for one text, computed over the persisted comments,
revision log and corpus strings.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db.log_models import LogEntryModel
from ..db.models import CommentModel, StringModel, TokenModel
from ..db.revision_log import LogFilter

# Token metadata value that marks a word (as opposed to punctuation etc.)
WORD_META = "word"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def estimate_completion(
    earliest: Optional[datetime], ready: int, total: int, now: datetime
) -> Optional[datetime]:
    """Project the finish time assuming work continues at the observed pace.

    Returns None when nothing is published yet or there is no history.
    """
    if earliest is None or total <= 0 or ready <= 0:
        return None
    earliest = _as_utc(earliest)
    ratio = ready / total
    return earliest + (_as_utc(now) - earliest) / ratio


@dataclass
class TextStats:
    """Aggregated progress of one text."""

    completion_counts: Dict[str, int]
    estimated_completion: Optional[datetime] = None
    per_user_activity: List[Dict[str, int]] = field(default_factory=list)
    word_frequency_histogram: List[Dict[str, int]] = field(default_factory=list)
    tag_frequency: List[Dict[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "etc": self.estimated_completion.isoformat() if self.estimated_completion else None,
            "comments": self.completion_counts,
            "changes": self.per_user_activity,
            "words": self.word_frequency_histogram,
            "tags": self.tag_frequency,
        }


class StatsAggregator:
    """Computes TextStats; never writes."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def completion_counts(self, text_id: int) -> Dict[str, int]:
        total = (
            self.db.query(func.count(CommentModel.id))
            .filter(CommentModel.text_id == text_id)
            .scalar()
            or 0
        )
        ready = (
            self.db.query(func.count(CommentModel.id))
            .filter(CommentModel.text_id == text_id, CommentModel.published.is_(True))
            .scalar()
            or 0
        )
        return {"total": total, "ready": ready, "draft": total - ready}

    def per_user_activity(self, text_id: int) -> List[Dict[str, int]]:
        rows = (
            self.db.query(LogEntryModel.user_id, func.count(LogEntryModel.id))
            .filter(*LogFilter(text_id=text_id).predicates())
            .group_by(LogEntryModel.user_id)
            .order_by(LogEntryModel.user_id)
            .all()
        )
        return [{"user_id": user_id, "count": count} for user_id, count in rows]

    def earliest_change(self, text_id: int) -> Optional[datetime]:
        return (
            self.db.query(func.min(LogEntryModel.created))
            .filter(*LogFilter(text_id=text_id).predicates())
            .scalar()
        )

    def word_frequency_histogram(self, text_id: int) -> List[Dict[str, int]]:
        """Number of words per count of bound comments."""
        counts = Counter(
            len(comments or [])
            for (comments,) in self.db.query(StringModel.comments)
            .join(TokenModel, StringModel.token_id == TokenModel.id)
            .filter(StringModel.text_id == text_id, TokenModel.meta == WORD_META)
        )
        return [{"qty": qty, "count": counts[qty]} for qty in sorted(counts)]

    def tag_frequency(self, text_id: int) -> List[Dict[str, int]]:
        """Comments per tag id, most used first."""
        counts: Counter = Counter()
        for (tags,) in self.db.query(CommentModel.tags).filter(
            CommentModel.text_id == text_id
        ):
            counts.update(set(tags or []))
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"tag_id": tag_id, "qty": qty} for tag_id, qty in ranked]

    def stats(self, text_id: int) -> TextStats:
        counts = self.completion_counts(text_id)
        return TextStats(
            completion_counts=counts,
            estimated_completion=estimate_completion(
                self.earliest_change(text_id),
                counts["ready"],
                counts["total"],
                self.clock(),
            ),
            per_user_activity=self.per_user_activity(text_id),
            word_frequency_histogram=self.word_frequency_histogram(text_id),
            tag_frequency=self.tag_frequency(text_id),
        )
