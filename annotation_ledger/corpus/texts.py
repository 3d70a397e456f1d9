"""
Text Service.

Text records, their annotation schemes and the bulk removal of a text's
corpus positions ahead of re-ingestion.
"""

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..annotations.schemas import SchemeField
from ..db.models import StringModel, TextModel, TokenModel
from ..errors import NotFoundError, StorageError, ValidationError
from ..policy import Action, Actor, require
from .schemas import TextParams

logger = structlog.get_logger()


class TextService:
    """Service for managing texts."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, text_id: int) -> TextModel:
        """Get a text by id."""
        text = self.db.get(TextModel, text_id)
        if text is None:
            raise NotFoundError(f"Text {text_id} not found")
        return text

    def list(self) -> List[TextModel]:
        return self.db.query(TextModel).order_by(TextModel.id).all()

    def set_text(self, actor: Actor, params: TextParams) -> int:
        """Create or update a text's descriptive properties."""
        require(actor, Action.EDIT_TEXT)
        if params.id:
            text = self.get(params.id)
        else:
            text = TextModel(loaded=False)
            self.db.add(text)

        text.author = params.author
        text.title = params.title
        text.lang = params.lang
        text.meta = params.meta
        text.url = params.url.strip()
        text.comments = params.comments
        self._commit("Text")
        return text.id

    def set_scheme(self, actor: Actor, text_id: int, scheme: List[SchemeField]) -> int:
        """Replace the annotation scheme of a text.

        Raises:
            ValidationError: Two fields share an id
        """
        require(actor, Action.EDIT_TEXT)
        seen = set()
        for field in scheme:
            if field.id in seen:
                raise ValidationError(
                    f"Scheme field id '{field.id}' is not unique",
                    details={"field": field.id},
                )
            seen.add(field.id)

        text = self.get(text_id)
        text.scheme = [field.model_dump(mode="json") for field in scheme]
        self._commit("Scheme")
        return text.id

    def mark_loaded(self, actor: Actor, text_id: int, loaded: bool = True) -> int:
        require(actor, Action.INGEST_TEXT)
        text = self.get(text_id)
        text.loaded = loaded
        self._commit("Text")
        return text.id

    def clear_strings(self, actor: Actor, text_id: int) -> int:
        """Delete every corpus position of a text; returns the deleted count."""
        require(actor, Action.INGEST_TEXT)
        text = self.get(text_id)
        deleted = (
            self.db.query(StringModel)
            .filter(StringModel.text_id == text_id)
            .delete(synchronize_session=False)
        )
        text.loaded = False
        self._commit("String removal")
        logger.info("strings_cleared", text_id=text_id, deleted=deleted, actor_id=actor.id)
        return deleted

    def strings(self, text_id: int) -> List[Dict[str, Any]]:
        """Corpus positions of a text with their token metadata.

        Returns an empty list when the query fails.
        """
        try:
            rows = (
                self.db.query(StringModel, TokenModel.meta)
                .outerjoin(TokenModel, StringModel.token_id == TokenModel.id)
                .filter(StringModel.text_id == text_id)
                .order_by(StringModel.id)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("strings_query_failed", text_id=text_id, error=str(exc))
            self.db.rollback()
            return []
        return [{**row.to_dict(), "meta": meta} for row, meta in rows]

    def strings_range(self, first_id: int, last_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Strings with ids from ``first_id`` to ``last_id`` inclusive, with
        token metadata. Without ``last_id`` only ``first_id`` is returned.

        Returns an empty list when the query fails.
        """
        if last_id is None:
            last_id = first_id
        try:
            rows = (
                self.db.query(StringModel, TokenModel.meta)
                .outerjoin(TokenModel, StringModel.token_id == TokenModel.id)
                .filter(StringModel.id.between(first_id, last_id))
                .order_by(StringModel.id)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("strings_range_query_failed", first_id=first_id, error=str(exc))
            self.db.rollback()
            return []
        return [{**row.to_dict(), "meta": meta} for row, meta in rows]

    def untagged_tokens(self, lang: Optional[str] = None) -> List[TokenModel]:
        """Tokens with no part-of-speech metadata yet."""
        query = self.db.query(TokenModel).filter(
            or_(TokenModel.meta.is_(None), TokenModel.meta == "")
        )
        if lang:
            query = query.filter(TokenModel.lang == lang)
        return query.order_by(TokenModel.id).all()

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"{what} could not be saved") from exc
