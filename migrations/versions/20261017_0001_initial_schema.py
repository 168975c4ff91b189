"""Initial laboratory booking schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create accounts, equipment, grants and bookings."""
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("group_name", sa.String(length=150), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    op.create_index(
        "ix_users_username_deleted_at", "users", ["username", "deleted_at"], unique=False
    )

    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_equipment"),
        sa.UniqueConstraint("name", name="uq_equipment_name"),
    )

    op.create_table(
        "user_equipment_permissions",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("equipment_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_user_equipment_permissions_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["equipment_id"],
            ["equipment.id"],
            name="fk_user_equipment_permissions_equipment_id_equipment",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("user_id", "equipment_id", name="pk_user_equipment_permissions"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("equipment_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        sa.ForeignKeyConstraint(
            ["equipment_id"],
            ["equipment.id"],
            name="fk_bookings_equipment_id_equipment",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_bookings_user_id_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
    )
    op.create_index(
        "ix_bookings_equipment_id_start_time",
        "bookings",
        ["equipment_id", "start_time"],
        unique=False,
    )
    op.create_index(
        "ix_bookings_user_id_end_time", "bookings", ["user_id", "end_time"], unique=False
    )
    # Half-open ranges: touching bookings do not conflict.
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_equipment_slot "
        "EXCLUDE USING gist (equipment_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&)"
    )


def downgrade() -> None:
    """Drop the initial schema."""
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_equipment_slot")
    op.drop_index("ix_bookings_user_id_end_time", table_name="bookings")
    op.drop_index("ix_bookings_equipment_id_start_time", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("user_equipment_permissions")
    op.drop_table("equipment")
    op.drop_index("ix_users_username_deleted_at", table_name="users")
    op.drop_table("users")
