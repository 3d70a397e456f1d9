"""
Tests for tags, issues and string bindings.
"""

import pytest

from annotation_ledger.annotations.schemas import CommentParams, IssueParams, TagParams
from annotation_ledger.annotations.services import (
    CommentStore,
    IssueService,
    StringBindingService,
    TagService,
)
from annotation_ledger.db.models import StringModel, TagModel
from annotation_ledger.errors import AuthorizationError, ConflictError, NotFoundError


@pytest.fixture
def store(db_session, settings):
    return CommentStore(db_session, settings=settings)


class TestTags:
    """Tests for TagService."""

    def test_create_and_rename(self, db_session, editor):
        """Verify a tag can be created and renamed."""
        tags = TagService(db_session)
        tag_id = tags.set_tag(editor, TagParams(title="battle"))
        tags.set_tag(editor, TagParams(id=tag_id, title="war"))

        assert [t.to_dict() for t in tags.list()] == [{"id": tag_id, "title": "war"}]

    def test_rename_unknown(self, db_session, editor):
        """Verify renaming a missing tag raises NotFoundError."""
        with pytest.raises(NotFoundError):
            TagService(db_session).set_tag(editor, TagParams(id=9, title="x"))

    def test_delete_unused(self, db_session, editor):
        """Verify an unreferenced tag is deleted."""
        tags = TagService(db_session)
        tag_id = tags.set_tag(editor, TagParams(title="spare"))

        assert tags.delete_tag(editor, tag_id) == tag_id
        assert db_session.get(TagModel, tag_id) is None

    def test_delete_referenced_tag_conflicts(self, db_session, store, editor, text):
        """Verify a tag used by a comment cannot be deleted."""
        tags = TagService(db_session)
        tag_id = tags.set_tag(editor, TagParams(title="used"))
        store.upsert_comment(editor, CommentParams(text_id=text.id, title="A", tags=[tag_id]))

        with pytest.raises(ConflictError) as exc_info:
            tags.delete_tag(editor, tag_id)

        assert exc_info.value.details == {"id": tag_id, "comments": 1}
        assert db_session.get(TagModel, tag_id) is not None

    def test_observer_cannot_edit(self, db_session, observer):
        """Verify observers cannot edit tags."""
        with pytest.raises(AuthorizationError):
            TagService(db_session).set_tag(observer, TagParams(title="x"))


class TestIssues:
    """Tests for IssueService."""

    def test_default_color(self, db_session, editor):
        """Verify new issues default to black."""
        issues = IssueService(db_session)
        issue_id = issues.set_issue(editor, IssueParams(title="dating"))

        assert issues.list()[0].to_dict() == {
            "id": issue_id,
            "color": "#000000",
            "title": "dating",
        }

    def test_delete_referenced_issue_conflicts(self, db_session, store, editor, text):
        """Verify an issue used by a comment cannot be deleted."""
        issues = IssueService(db_session)
        issue_id = issues.set_issue(editor, IssueParams(title="dating", color="#ff0000"))
        store.upsert_comment(
            editor, CommentParams(text_id=text.id, title="A", issues=[[issue_id, 1]])
        )

        with pytest.raises(ConflictError):
            issues.delete_issue(editor, issue_id)

    def test_delete_unknown(self, db_session, editor):
        """Verify deleting a missing issue raises NotFoundError."""
        with pytest.raises(NotFoundError):
            IssueService(db_session).delete_issue(editor, 42)


class TestStringBinding:
    """Tests for StringBindingService."""

    @pytest.fixture
    def string_ids(self, db_session, text):
        rows = [StringModel(text_id=text.id, form=f, repr=f) for f in ("a", "b", "c")]
        db_session.add_all(rows)
        db_session.commit()
        return [row.id for row in rows]

    def test_bind_is_idempotent(self, db_session, editor, string_ids):
        """Verify binding twice stores the comment once."""
        binder = StringBindingService(db_session)
        binder.bind_comment(editor, 7, string_ids[:2])
        binder.bind_comment(editor, 7, string_ids[:2])

        assert db_session.get(StringModel, string_ids[0]).comments == [7]

    def test_unbind(self, db_session, editor, text, string_ids):
        """Verify unbinding removes only the named comment."""
        binder = StringBindingService(db_session)
        binder.bind_comment(editor, 7, string_ids)
        binder.bind_comment(editor, 8, string_ids[:1])
        binder.unbind_comment(editor, 7, string_ids[:1])

        assert db_session.get(StringModel, string_ids[0]).comments == [8]
        assert [s.id for s in binder.bound_strings(text.id, 7)] == string_ids[1:]

    def test_set_string_comments(self, db_session, editor, string_ids):
        """Verify a string's comment list is replaced and coerced to ints."""
        binder = StringBindingService(db_session)
        binder.set_string_comments(editor, string_ids[2], ["3", 4])

        assert db_session.get(StringModel, string_ids[2]).comments == [3, 4]

    def test_observer_cannot_bind(self, db_session, observer, string_ids):
        """Verify observers cannot bind comments."""
        with pytest.raises(AuthorizationError):
            StringBindingService(db_session).bind_comment(observer, 1, string_ids)


class TestStringFormat:
    """Tests for StringBindingService.set_string_format()."""

    @pytest.fixture
    def string_id(self, db_session, text):
        row = StringModel(text_id=text.id, form="w", repr="w")
        db_session.add(row)
        db_session.commit()
        return row.id

    def test_format_is_replaced(self, db_session, editor, string_id):
        """Verify the class list is stored and later replaced."""
        binder = StringBindingService(db_session)
        assert binder.set_string_format(editor, string_id, ["bold", "red"]) == string_id
        binder.set_string_format(editor, string_id, ["italic"])

        db_session.expire_all()
        assert db_session.get(StringModel, string_id).fmt == ["italic"]

    def test_format_can_be_cleared(self, db_session, editor, string_id):
        """Verify an empty list clears formatting."""
        binder = StringBindingService(db_session)
        binder.set_string_format(editor, string_id, ["bold"])
        binder.set_string_format(editor, string_id, [])

        db_session.expire_all()
        assert db_session.get(StringModel, string_id).fmt == []

    def test_unknown_string(self, db_session, editor):
        """Verify formatting a missing string raises NotFoundError."""
        with pytest.raises(NotFoundError):
            StringBindingService(db_session).set_string_format(editor, 404, ["bold"])

    def test_observer_cannot_format(self, db_session, observer, string_id):
        """Verify observers cannot change formatting."""
        with pytest.raises(AuthorizationError):
            StringBindingService(db_session).set_string_format(observer, string_id, ["bold"])
        assert db_session.get(StringModel, string_id).fmt in (None, [])
