"""entry analyzed_at

Revision ID: c58e1b7f2d90
Revises: a3f9c2d41e07
Create Date: 2026-10-18 10:03:17.220954

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c58e1b7f2d90"
down_revision: Union[str, Sequence[str], None] = "a3f9c2d41e07"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column(
        "entries", sa.Column("analyzed_at", sa.DateTime(timezone=True), nullable=True)
    )
    # Backfill rows analyzed before this column existed
    op.execute(
        "UPDATE entries SET analyzed_at = updated_at WHERE status = 'analyzed'"
    )
    op.create_index("idx_entries_analyzed_at", "entries", ["analyzed_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_entries_analyzed_at", table_name="entries")
    with op.batch_alter_table("entries") as batch_op:
        batch_op.drop_column("analyzed_at")
