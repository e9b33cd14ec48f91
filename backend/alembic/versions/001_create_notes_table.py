"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `notes` table with its list and full-text indexes.
How:   Portable column types; the GIN full-text index is created only on
       PostgreSQL.

Rollback: downgrade() drops the indexes and the table (all notes are lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SEARCH_DOCUMENT_SQL = "to_tsvector('english', title || ' ' || content)"


def upgrade() -> None:
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Server-assigned note id, never reused"),
        sa.Column("title", sa.Text(), nullable=False, comment="1-200 characters, HTML-escaped"),
        sa.Column("content", sa.Text(), nullable=False, comment="1-10000 characters, HTML-escaped"),
        sa.Column(
            "tags",
            sa.JSON(),
            nullable=False,
            comment="Ordered list of at most 10 tags",
        ),
        sa.Column(
            "is_archived",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
            comment="UTC, set once at creation",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
            comment="UTC, strictly increases on every mutation",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_notes_is_archived", "notes", ["is_archived"])

    # Default list view: newest first within the active/archived split
    op.create_index(
        "idx_notes_created_at_archived",
        "notes",
        [sa.text("created_at DESC"), "is_archived"],
    )

    if op.get_bind().dialect.name == "postgresql":
        op.create_index(
            "idx_notes_text_search",
            "notes",
            [sa.text(SEARCH_DOCUMENT_SQL)],
            postgresql_using="gin",
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.drop_index("idx_notes_text_search", table_name="notes")
    op.drop_index("idx_notes_created_at_archived", table_name="notes")
    op.drop_index("ix_notes_is_archived", table_name="notes")
    op.drop_table("notes")
