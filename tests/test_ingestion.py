"""
Tests for the corpus ingestion pipeline.

Verifies:
- tokens are deduplicated per (token, lang) and keep first-seen metadata
- strings are inserted in stream order and linked to their tokens
- a failure anywhere in the stream commits nothing
- replacing a text's strings happens inside the ingestion transaction
"""

import pytest

from annotation_ledger.corpus.ingestion import CorpusIngestion
from annotation_ledger.corpus.schemas import TokenRecord
from annotation_ledger.corpus.texts import TextService
from annotation_ledger.db.models import StringModel, TextModel, TokenModel
from annotation_ledger.errors import AuthorizationError, IngestionError, ValidationError


@pytest.fixture
def ingestion(db_session, settings):
    return CorpusIngestion(db_session, settings)


def _records():
    return [
        {"p": 1, "s": 1, "form": "The", "repr": "the", "meta": "word"},
        {"p": 1, "s": 1, "form": "cat", "meta": "word"},
        {"p": 1, "s": 1, "form": ",", "meta": "punct"},
        {"p": 1, "s": 2, "form": "cat", "meta": "noun"},
        {"p": 1, "s": 2, "form": ".", "meta": "punct"},
    ]


def _forms(db_session, text_id):
    rows = (
        db_session.query(StringModel)
        .filter(StringModel.text_id == text_id)
        .order_by(StringModel.id)
        .all()
    )
    return [s.form for s in rows]


class TestIngest:
    """Tests for a successful CorpusIngestion.ingest()."""

    def test_tokens_are_deduplicated(self, db_session, ingestion, editor, text):
        """Verify one token per (token, lang) with first-seen metadata."""
        ingestion.ingest(editor, text.id, _records(), "en")

        cats = db_session.query(TokenModel).filter(TokenModel.token == "cat").all()
        assert len(cats) == 1
        assert cats[0].meta == "word"
        assert cats[0].lang == "en"
        assert db_session.query(TokenModel).count() == 4

    def test_strings_keep_stream_order_and_links(self, db_session, ingestion, editor, text):
        """Verify strings follow the stream and share token links."""
        ingestion.ingest(editor, text.id, _records(), "en")

        strings = (
            db_session.query(StringModel)
            .filter(StringModel.text_id == text.id)
            .order_by(StringModel.id)
            .all()
        )
        assert [s.form for s in strings] == ["The", "cat", ",", "cat", "."]
        assert [s.repr for s in strings] == ["the", "cat", ",", "cat", "."]
        assert all(s.token_id is not None for s in strings)
        assert strings[1].token_id == strings[3].token_id
        assert strings[3].s == 2

    def test_text_is_marked_loaded(self, db_session, ingestion, editor, text):
        """Verify the text is flagged loaded after ingestion."""
        elapsed = ingestion.ingest(editor, text.id, _records(), "en")

        db_session.expire_all()
        assert db_session.get(TextModel, text.id).loaded is True
        assert elapsed >= 0

    def test_accepts_token_records(self, db_session, ingestion, editor, text):
        """Verify validated records are accepted as well as mappings."""
        ingestion.ingest(editor, text.id, [TokenRecord(form="dog")], "en")
        assert db_session.query(StringModel).one().repr == "dog"

    def test_languages_do_not_share_tokens(self, db_session, ingestion, editor, text):
        """Verify the same form in two languages makes two tokens."""
        other = TextModel(author="A", title="B", lang="de", loaded=False)
        db_session.add(other)
        db_session.commit()

        ingestion.ingest(editor, text.id, [{"form": "rat"}], "en")
        ingestion.ingest(editor, other.id, [{"form": "rat"}], "de")

        assert db_session.query(TokenModel).filter(TokenModel.token == "rat").count() == 2
        links = {s.text_id: s.token_id for s in db_session.query(StringModel).all()}
        assert links[text.id] != links[other.id]

    def test_reingest_after_clear(self, db_session, ingestion, editor, text):
        """Verify a cleared text can be loaded again without new tokens."""
        ingestion.ingest(editor, text.id, _records(), "en")
        TextService(db_session).clear_strings(editor, text.id)
        ingestion.ingest(editor, text.id, _records()[:2], "en")

        assert db_session.query(StringModel).count() == 2
        assert db_session.query(TokenModel).count() == 4


class TestReplace:
    """Tests for ingest(replace=True)."""

    def test_replace_swaps_strings(self, db_session, ingestion, editor, text):
        """Verify the old strings are removed and the new ones loaded."""
        ingestion.ingest(editor, text.id, _records(), "en")
        ingestion.ingest(editor, text.id, [{"form": "dog"}], "en", replace=True)

        assert _forms(db_session, text.id) == ["dog"]

    def test_replace_leaves_other_texts(self, db_session, ingestion, editor, text):
        """Verify only the target text's strings are removed."""
        other = TextModel(author="A", title="B", lang="en", loaded=False)
        db_session.add(other)
        db_session.commit()
        ingestion.ingest(editor, other.id, [{"form": "owl"}], "en")

        ingestion.ingest(editor, text.id, [{"form": "dog"}], "en", replace=True)

        assert _forms(db_session, other.id) == ["owl"]

    def test_failed_replace_keeps_old_strings(self, db_session, ingestion, editor, text):
        """Verify a failed re-ingestion leaves the previous load intact."""
        ingestion.ingest(editor, text.id, _records(), "en")

        def stream():
            yield {"form": "dog"}
            raise RuntimeError("tokenizer crashed")

        with pytest.raises(IngestionError):
            ingestion.ingest(editor, text.id, stream(), "en", replace=True)

        db_session.expire_all()
        assert _forms(db_session, text.id) == ["The", "cat", ",", "cat", "."]
        assert db_session.get(TextModel, text.id).loaded is True
        assert db_session.query(TokenModel).filter(TokenModel.token == "dog").count() == 0


class TestIngestFailure:
    """Tests for failed ingestion."""

    def test_failing_stream_commits_nothing(self, db_session, ingestion, editor, text):
        """Verify an exception mid-stream rolls everything back."""
        def stream():
            yield from _records()
            raise RuntimeError("tokenizer crashed")

        with pytest.raises(IngestionError) as exc_info:
            ingestion.ingest(editor, text.id, stream(), "en")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert db_session.query(StringModel).count() == 0
        assert db_session.query(TokenModel).count() == 0
        assert db_session.get(TextModel, text.id).loaded is False

    def test_invalid_record_commits_nothing(self, db_session, ingestion, editor, text):
        """Verify a malformed record rolls everything back."""
        records = _records() + [{"p": 2}]

        with pytest.raises(IngestionError):
            ingestion.ingest(editor, text.id, records, "en")

        assert db_session.query(StringModel).count() == 0

    def test_unknown_text(self, ingestion, editor):
        """Verify the text must exist."""
        with pytest.raises(ValidationError):
            ingestion.ingest(editor, 404, _records(), "en")

    def test_missing_language(self, ingestion, editor, text):
        """Verify a language is required."""
        with pytest.raises(ValidationError):
            ingestion.ingest(editor, text.id, _records(), "")

    def test_observer_is_rejected(self, db_session, ingestion, observer, text):
        """Verify observers cannot ingest."""
        with pytest.raises(AuthorizationError):
            ingestion.ingest(observer, text.id, _records(), "en")
        assert db_session.query(StringModel).count() == 0


class TestTextService:
    """Tests for TextService string helpers."""

    def test_strings_include_token_meta(self, db_session, ingestion, editor, text):
        """Verify strings carry their token's metadata."""
        ingestion.ingest(editor, text.id, _records()[:2], "en")

        rows = TextService(db_session).strings(text.id)

        assert [row["meta"] for row in rows] == ["word", "word"]

    def test_strings_range_is_inclusive(self, db_session, ingestion, editor, text):
        """Verify both range ends are included, with metadata."""
        ingestion.ingest(editor, text.id, _records(), "en")
        ids = [s.id for s in db_session.query(StringModel).order_by(StringModel.id)]

        rows = TextService(db_session).strings_range(ids[1], ids[3])

        assert [row["id"] for row in rows] == ids[1:4]
        assert [row["meta"] for row in rows] == ["word", "punct", "word"]

    def test_strings_range_single(self, db_session, ingestion, editor, text):
        """Verify a missing upper bound returns just the first string."""
        ingestion.ingest(editor, text.id, _records(), "en")
        first = db_session.query(StringModel).order_by(StringModel.id).first()

        rows = TextService(db_session).strings_range(first.id)

        assert [row["form"] for row in rows] == ["The"]

    def test_strings_range_empty(self, db_session, text):
        """Verify a range with no strings is empty."""
        assert TextService(db_session).strings_range(100, 200) == []

    def test_untagged_tokens(self, db_session, ingestion, editor, text):
        """Verify only tokens without metadata are listed."""
        ingestion.ingest(editor, text.id, [{"form": "x"}, {"form": "y", "meta": "word"}], "en")

        untagged = TextService(db_session).untagged_tokens("en")

        assert [t.token for t in untagged] == ["x"]

    def test_clear_strings_resets_loaded(self, db_session, ingestion, editor, text):
        """Verify clearing strings also clears the loaded flag."""
        ingestion.ingest(editor, text.id, _records(), "en")

        deleted = TextService(db_session).clear_strings(editor, text.id)

        assert deleted == 5
        assert db_session.get(TextModel, text.id).loaded is False

    def test_mark_loaded(self, db_session, editor, text):
        """Verify a text can be flagged loaded directly."""
        TextService(db_session).mark_loaded(editor, text.id)
        assert db_session.get(TextModel, text.id).loaded is True
