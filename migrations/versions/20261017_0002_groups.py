"""Research group catalogue."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261017_0002"
down_revision = "20261017_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the groups table and seed it from labels already on accounts."""
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.UniqueConstraint("name", name="uq_groups_name"),
    )
    op.execute(
        "INSERT INTO groups (name) "
        "SELECT DISTINCT btrim(group_name) FROM users "
        "WHERE group_name IS NOT NULL AND btrim(group_name) <> '' "
        "ON CONFLICT (name) DO NOTHING"
    )


def downgrade() -> None:
    """Drop the group catalogue; account labels are left untouched."""
    op.drop_table("groups")
