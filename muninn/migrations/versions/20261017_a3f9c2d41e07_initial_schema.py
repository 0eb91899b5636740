"""initial schema

Revision ID: a3f9c2d41e07
Revises:
Create Date: 2026-10-17 09:12:41.503118

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a3f9c2d41e07"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "entries",
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("audio_path", sa.Text(), nullable=True),
        sa.Column("audio_duration_seconds", sa.Float(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "pending_transcription",
                "transcribed",
                "analyzed",
                name="entrystatus",
                native_enum=False,
                length=32,
            ),
            nullable=False,
        ),
        sa.Column("analysis_json", sa.Text(), nullable=True),
        sa.Column("follow_up_questions", sa.Text(), nullable=True),
        sa.Column("agent_trajectory", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("id != ''", name="ck_entry_non_empty_id"),
        sa.CheckConstraint(
            "audio_duration_seconds IS NULL OR audio_duration_seconds >= 0",
            name="ck_entry_non_negative_duration",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_entries_created_at", "entries", ["created_at"])
    op.create_index("idx_entries_status", "entries", ["status"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("name != ''", name="ck_non_empty_tag"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "entry_tags",
        sa.Column("entry_id", sa.String(length=100), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["entry_id"], ["entries.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("entry_id", "tag_id"),
    )
    # Hot path of every tag listing
    op.create_index("idx_entry_tags_tag_id", "entry_tags", ["tag_id"])

    op.create_table(
        "entry_links",
        sa.Column("source_id", sa.String(length=100), nullable=False),
        sa.Column("target_id", sa.String(length=100), nullable=False),
        sa.Column("relationship", sa.Text(), nullable=True),
        sa.Column("reverse_relationship", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("source_id != target_id", name="ck_entry_link_no_self"),
        sa.ForeignKeyConstraint(["source_id"], ["entries.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_id"], ["entries.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("source_id", "target_id"),
    )
    op.create_index("idx_entry_links_target_id", "entry_links", ["target_id"])

    op.create_table(
        "cache",
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("depends_on", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("settings")
    op.drop_table("cache")
    op.drop_index("idx_entry_links_target_id", table_name="entry_links")
    op.drop_table("entry_links")
    op.drop_index("idx_entry_tags_tag_id", table_name="entry_tags")
    op.drop_table("entry_tags")
    op.drop_table("tags")
    op.drop_index("idx_entries_status", table_name="entries")
    op.drop_index("idx_entries_created_at", table_name="entries")
    op.drop_table("entries")
