"""
Revision Log Database Models.

Every comment mutation is recorded with its before/after snapshots in the same
transaction as the mutation itself. Entries are never updated or deleted.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.sql import func

from .base import Base


class LogEntryModel(Base):
    """One audit record.

    ``data0`` is the prior snapshot (``{}`` for a creation event) and
    ``data1`` the new one.
    """

    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    created = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        index=True,
    )

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    table_name = Column(String(64), nullable=False)
    record_id = Column(Integer, nullable=False)

    data0 = Column(JSON, nullable=True)
    data1 = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_logs_record", "table_name", "record_id"),
        Index("ix_logs_created_id", "created", "id"),
    )

    @property
    def is_creation(self) -> bool:
        return not self.data0

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "created": self.created.isoformat() if self.created else None,
            "user_id": self.user_id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "data0": self.data0,
            "data1": self.data1,
        }
