"""
Tests for the revision log.

Verifies:
- append gating, table validation and creation events
- stable newest-first pagination with a constant total count
- text filtering through either snapshot
- record history and the present flag
"""

import pytest

from annotation_ledger.annotations.schemas import CommentParams
from annotation_ledger.annotations.services import CommentStore
from annotation_ledger.corpus.schemas import SchemeParams
from annotation_ledger.corpus.texts import TextService
from annotation_ledger.db.log_models import LogEntryModel
from annotation_ledger.db.models import CommentModel, TextModel
from annotation_ledger.db.revision_log import LogFilter, RevisionLog
from annotation_ledger.errors import AuthorizationError, NotFoundError, ValidationError


@pytest.fixture
def log(db_session, settings):
    return RevisionLog(db_session, settings)


@pytest.fixture
def store(db_session, settings):
    return CommentStore(db_session, settings=settings)


@pytest.fixture
def other_text(db_session):
    text = TextModel(author="Anon", title="Annals", lang="en", loaded=False)
    db_session.add(text)
    db_session.commit()
    return text


class TestAppend:
    """Tests for RevisionLog.append()."""

    def test_append_requires_editor(self, log, observer):
        """Verify observers cannot append comment entries."""
        with pytest.raises(AuthorizationError):
            log.append(observer, "comments", 1, {}, {"title": "A"})

    def test_inactive_actor_is_rejected_for_strings(self, db_session, log, inactive_editor):
        """Verify deactivated actors cannot log string changes."""
        with pytest.raises(AuthorizationError):
            log.append(inactive_editor, "strings", 1, {}, {"text_id": 1})
        assert db_session.query(LogEntryModel).count() == 0

    def test_observer_is_rejected_for_users(self, db_session, log, observer):
        """Verify observers cannot log user changes."""
        with pytest.raises(AuthorizationError):
            log.append(observer, "users", 99, {}, {"privs": 1})
        assert db_session.query(LogEntryModel).count() == 0

    def test_unknown_table_is_rejected(self, db_session, log, admin):
        """Verify tables outside the log's vocabulary are refused."""
        with pytest.raises(ValidationError) as exc_info:
            log.append(admin, "sessions", 1, {}, {"sid": "x"})
        assert exc_info.value.details == {"table": "sessions"}
        assert db_session.query(LogEntryModel).count() == 0

    def test_editor_may_log_strings(self, db_session, log, editor):
        """Verify mapped tables pass the gate for a permitted actor."""
        entry_id = log.append(editor, "strings", 1, {}, {"text_id": 1})
        db_session.commit()
        assert log.get(entry_id).table_name == "strings"

    def test_append_only_flushes(self, db_session, log, editor):
        """Verify append leaves the commit to the caller."""
        entry_id = log.append(editor, "comments", 1, None, {"title": "A"})
        db_session.rollback()
        assert db_session.get(LogEntryModel, entry_id) is None

    def test_none_before_is_stored_empty(self, db_session, log, editor):
        """Verify a missing before snapshot is stored as an empty mapping."""
        entry_id = log.append(editor, "comments", 1, None, {"title": "A"})
        db_session.commit()
        entry = log.get(entry_id)
        assert entry.data0 == {}
        assert entry.is_creation


class TestPagination:
    """Tests for RevisionLog.list() paging."""

    def test_pages_are_newest_first_and_disjoint(self, log, store, editor, text):
        """Verify page sizes, constant count and newest-first order."""
        created = [
            store.upsert_comment(
                editor, CommentParams(text_id=text.id, title=f"c{i}", priority=i)
            ).log_entry_id
            for i in range(7)
        ]

        pages = [log.list(offset=offset) for offset in (0, 3, 6, 9)]

        assert [len(page.rows) for page in pages] == [3, 3, 1, 0]
        assert {page.count for page in pages} == {7}
        seen = [row["id"] for page in pages for row in page.rows]
        assert seen == list(reversed(created))

    def test_explicit_limit(self, log, store, editor, text):
        """Verify an explicit limit overrides the configured page size."""
        for i in range(4):
            store.upsert_comment(editor, CommentParams(text_id=text.id, title=f"c{i}"))

        page = log.list(limit=10)

        assert len(page.rows) == 4
        assert page.to_dict()["count"] == 4

    def test_record_filter(self, log, store, editor, text):
        """Verify filtering by record id."""
        first = store.upsert_comment(editor, CommentParams(text_id=text.id, title="a"))
        store.upsert_comment(editor, CommentParams(text_id=text.id, title="b"))
        store.upsert_comment(
            editor, CommentParams(id=first.id, text_id=text.id, title="a2")
        )

        page = log.list(LogFilter(record_id=first.id))

        assert page.count == 2
        assert {row["record_id"] for row in page.rows} == {first.id}


class TestTextFilter:
    """Tests for the text filter over both snapshots."""

    def test_moved_comment_appears_under_both_texts(
        self, log, store, editor, text, other_text
    ):
        """Verify a moved comment is listed under its old and new text."""
        moved = store.upsert_comment(editor, CommentParams(text_id=text.id, title="m"))
        store.upsert_comment(
            editor, CommentParams(id=moved.id, text_id=other_text.id, title="m")
        )
        store.upsert_comment(editor, CommentParams(text_id=other_text.id, title="x"))

        assert log.list(LogFilter(text_id=text.id)).count == 2
        assert log.list(LogFilter(text_id=other_text.id)).count == 2


class TestPresence:
    """Tests for the present flag."""

    def test_deleted_comment_is_not_present(self, db_session, log, store, editor, text):
        """Verify entries of deleted comments are flagged absent."""
        kept = store.upsert_comment(editor, CommentParams(text_id=text.id, title="k"))
        gone = store.upsert_comment(editor, CommentParams(text_id=text.id, title="g"))
        db_session.delete(db_session.get(CommentModel, gone.id))
        db_session.commit()

        rows = {row["record_id"]: row["present"] for row in log.list().rows}

        assert rows == {kept.id: True, gone.id: False}


class TestHistory:
    """Tests for RevisionLog.history()."""

    def test_history_marks_creation(self, log, store, editor, text):
        """Verify history is newest first with the creation flagged."""
        created = store.upsert_comment(editor, CommentParams(text_id=text.id, title="a"))
        updated = store.upsert_comment(
            editor, CommentParams(id=created.id, text_id=text.id, title="b")
        )

        history = log.history("comments", created.id)

        assert [row["id"] for row in history] == [
            updated.log_entry_id,
            created.log_entry_id,
        ]
        assert [row["init"] for row in history] == [False, True]
        assert history[0]["user_id"] == editor.id

    def test_history_limit(self, log, store, editor, text):
        """Verify the history can be capped."""
        created = store.upsert_comment(editor, CommentParams(text_id=text.id, title="a"))
        store.upsert_comment(editor, CommentParams(id=created.id, text_id=text.id, title="b"))

        assert len(log.history("comments", created.id, limit=1)) == 1


class TestReview:
    """Tests for RevisionLog.review()."""

    def test_review_uses_text_scheme(self, db_session, log, store, editor, text):
        """Verify scheme fields of the text are diffed."""
        TextService(db_session).set_scheme(
            editor,
            text.id,
            SchemeParams.model_validate(
                {"scheme": [{"id": "gloss", "type": "plain_text"}]}
            ).scheme,
        )
        created = store.upsert_comment(
            editor,
            CommentParams(text_id=text.id, title="a", entry={"gloss": "old"}),
        )
        updated = store.upsert_comment(
            editor,
            CommentParams(id=created.id, text_id=text.id, title="a", entry={"gloss": "new"}),
        )

        assert log.review(created.log_entry_id)["changes"] == ["created"]
        assert log.review(updated.log_entry_id)["changes"] == ["gloss"]

    def test_review_unknown_entry(self, log):
        """Verify a missing entry raises NotFoundError."""
        with pytest.raises(NotFoundError):
            log.review(12345)
