"""Create annotation tables

Revision ID: a3c5e7f9b1d2
Revises:
Create Date: 2026-10-19

Texts, the tag/issue vocabulary, users, the token/unit/string corpus schema,
comments and the revision log.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a3c5e7f9b1d2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "texts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("author", sa.Text, nullable=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("meta", sa.Text, nullable=True),
        sa.Column("url", sa.Text, nullable=True),
        sa.Column("lang", sa.String(length=32), nullable=False),
        sa.Column("scheme", sa.JSON, nullable=True),
        sa.Column("loaded", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("comments", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_texts_lang", "texts", ["lang"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text, nullable=True),
    )

    op.create_table(
        "issues",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("color", sa.String(length=32), nullable=False, server_default="#000000"),
        sa.Column("title", sa.Text, nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=128), nullable=False),
        sa.Column("firstname", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("lastname", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("privs", sa.Integer, nullable=False, server_default="7"),
        sa.Column("activated", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("requested", sa.DateTime(timezone=True), nullable=True),
        sa.Column("text_id", sa.Integer, sa.ForeignKey("texts.id"), nullable=True),
        sa.Column("note", sa.Text, nullable=True),
    )

    # Corpus
    op.create_table(
        "tokens",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("token", sa.Text, nullable=False),
        sa.Column("meta", sa.Text, nullable=True),
        sa.Column("lang", sa.String(length=32), nullable=True),
        sa.UniqueConstraint("token", "lang", name="uq_tokens_token_lang"),
    )

    op.create_table(
        "units",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("token_id", sa.Integer, sa.ForeignKey("tokens.id"), nullable=True),
        sa.Column("pos", sa.Text, nullable=True),
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("text_id", sa.Integer, sa.ForeignKey("texts.id"), nullable=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("published", sa.Boolean, nullable=True),
        sa.Column("priority", sa.Float, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("issues", sa.JSON, nullable=False),
        sa.Column("entry", sa.JSON, nullable=True),
    )
    op.create_index("ix_comments_text_id", "comments", ["text_id"])
    op.create_index("ix_comments_text_priority", "comments", ["text_id", "priority"])

    op.create_table(
        "strings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("text_id", sa.Integer, sa.ForeignKey("texts.id"), nullable=True),
        sa.Column("p", sa.Integer, nullable=True),
        sa.Column("s", sa.Integer, nullable=True),
        sa.Column("line", sa.Integer, nullable=True),
        sa.Column("form", sa.Text, nullable=True),
        sa.Column("repr", sa.Text, nullable=True),
        sa.Column("fmt", sa.JSON, nullable=False),
        sa.Column("token_id", sa.Integer, sa.ForeignKey("tokens.id"), nullable=True),
        sa.Column("unit_id", sa.Integer, sa.ForeignKey("units.id"), nullable=True),
        sa.Column("comments", sa.JSON, nullable=False),
    )
    op.create_index("ix_strings_text_id", "strings", ["text_id"])
    op.create_index("ix_strings_repr", "strings", ["repr"])

    # Revision log
    op.create_table(
        "logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "created",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("record_id", sa.Integer, nullable=False),
        sa.Column("data0", sa.JSON, nullable=True),
        sa.Column("data1", sa.JSON, nullable=True),
    )
    op.create_index("ix_logs_created", "logs", ["created"])
    op.create_index("ix_logs_user_id", "logs", ["user_id"])
    op.create_index("ix_logs_record", "logs", ["table_name", "record_id"])
    op.create_index("ix_logs_created_id", "logs", ["created", "id"])


def downgrade() -> None:
    op.drop_index("ix_logs_created_id", table_name="logs")
    op.drop_index("ix_logs_record", table_name="logs")
    op.drop_index("ix_logs_user_id", table_name="logs")
    op.drop_index("ix_logs_created", table_name="logs")
    op.drop_table("logs")

    op.drop_index("ix_strings_repr", table_name="strings")
    op.drop_index("ix_strings_text_id", table_name="strings")
    op.drop_table("strings")

    op.drop_index("ix_comments_text_priority", table_name="comments")
    op.drop_index("ix_comments_text_id", table_name="comments")
    op.drop_table("comments")

    op.drop_table("units")
    op.drop_table("tokens")
    op.drop_table("users")
    op.drop_table("issues")
    op.drop_table("tags")

    op.drop_index("ix_texts_lang", table_name="texts")
    op.drop_table("texts")
