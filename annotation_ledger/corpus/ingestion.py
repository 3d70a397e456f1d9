"""
Corpus ingestion pipeline.

Loads a tokenized document into the token/string schema inside a single
transaction:

1. with ``replace``, the text's existing strings are deleted
2. every record upserts its canonical token on (token, lang); an existing
   pair is left untouched, so the first-seen metadata wins
3. every record inserts a string row in stream order, token link deferred
4. one backfill statement links the new strings to their tokens

Either all of it is committed or none of it is. Concurrent ingestions of the
same language are kept consistent by the (token, lang) unique constraint
alone.
"""

import time
from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db.models import StringModel, TextModel, TokenModel
from ..errors import IngestionError, StorageError, ValidationError
from ..policy import Action, Actor, require
from .schemas import TokenRecord

logger = structlog.get_logger()

# Dialects with INSERT ... ON CONFLICT DO NOTHING support
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

Record = Union[TokenRecord, Mapping[str, Any]]


def _batched(records: Iterable[Record], size: int) -> Iterator[List[Record]]:
    iterator = iter(records)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class CorpusIngestion:
    """Writes tokenized documents into the corpus tables."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def _token_upsert(self):
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise StorageError(f"Token deduplication is not supported on '{dialect}'")
        return insert(TokenModel.__table__).on_conflict_do_nothing(
            index_elements=["token", "lang"]
        )

    def _backfill(self, text_id: int, lang: str):
        token_id = (
            select(TokenModel.id)
            .where(TokenModel.token == StringModel.repr, TokenModel.lang == lang)
            .scalar_subquery()
        )
        same_language = select(TextModel.id).where(TextModel.lang == lang)
        return (
            update(StringModel)
            .where(
                or_(StringModel.text_id == text_id, StringModel.text_id.in_(same_language)),
                StringModel.token_id.is_(None),
            )
            .values(token_id=token_id)
            .execution_options(synchronize_session=False)
        )

    def ingest(
        self,
        actor: Actor,
        text_id: int,
        records: Iterable[Record],
        lang: str,
        replace: bool = False,
    ) -> float:
        """Ingest a token stream for a text.

        Ingestion never merges: either the text's previous strings were
        removed beforehand (``TextService.clear_strings``) or ``replace``
        deletes them inside the same transaction, so a failed re-ingestion
        leaves the old strings in place.

        Args:
            actor: User performing the ingestion
            text_id: Text the strings belong to
            records: Token records in document order; consumed lazily
            lang: Language key for token deduplication
            replace: Delete the text's existing strings first

        Returns:
            Elapsed wall time of the transaction in seconds

        Raises:
            AuthorizationError: The actor may not ingest texts
            ValidationError: Unknown text or missing language
            IngestionError: Anything failed; nothing was committed
        """
        require(actor, Action.INGEST_TEXT)
        if not lang:
            raise ValidationError("Ingestion needs a language", details={"field": "lang"})
        text = self.db.get(TextModel, text_id)
        if text is None:
            raise ValidationError(
                f"Text {text_id} does not exist", details={"field": "text_id"}
            )

        op_logger = logger.bind(text_id=text_id, lang=lang, actor_id=actor.id)
        op_logger.info("ingest_start")
        started = time.perf_counter()
        processed = 0

        try:
            token_upsert = self._token_upsert()
            if replace:
                removed = self.db.execute(
                    delete(StringModel)
                    .where(StringModel.text_id == text_id)
                    .execution_options(synchronize_session=False)
                ).rowcount
                op_logger.info("ingest_replacing", removed=removed)
            strings = StringModel.__table__.insert()

            for batch in _batched(records, self.settings.ingest_batch_size):
                items = [
                    r if isinstance(r, TokenRecord) else TokenRecord.model_validate(r)
                    for r in batch
                ]
                for item in items:
                    self.db.execute(
                        token_upsert,
                        {"token": item.repr, "lang": lang, "meta": item.meta},
                    )
                self.db.execute(strings, [self._string_row(text_id, item) for item in items])
                processed += len(items)
                op_logger.debug("ingest_batch_flushed", processed=processed)

            self.db.execute(self._backfill(text_id, lang))
            text.loaded = True
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            op_logger.error("ingest_failed", processed=processed, error=str(exc))
            raise IngestionError(
                f"Ingestion of text {text_id} failed; nothing was committed",
                details={"text_id": text_id, "lang": lang},
            ) from exc

        elapsed = round(time.perf_counter() - started, 2)
        op_logger.info("ingest_done", strings=processed, seconds=elapsed)
        return elapsed

    @staticmethod
    def _string_row(text_id: int, item: TokenRecord) -> Dict[str, Any]:
        return {
            "text_id": text_id,
            "p": item.p,
            "s": item.s,
            "line": item.line,
            "form": item.form,
            "repr": item.repr,
            "fmt": [],
            "comments": [],
        }
