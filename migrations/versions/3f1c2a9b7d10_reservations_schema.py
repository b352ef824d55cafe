"""reservations schema

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:12:44.518230

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


calendar_status = sa.Enum("Pending", "Synced", "Error", name="calendar_status")


def upgrade() -> None:
    op.create_table(
        "restaurants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(300), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column("restaurant_slug", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("reservation_code", sa.String(6), nullable=False, unique=True),
        sa.Column("restaurant", sa.String(64), nullable=False),
        sa.Column("calendar_status", calendar_status, nullable=False, server_default="Pending"),
        sa.Column("calendar_event_id", sa.String(1024), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_reservations_slot", "reservations", ["restaurant", "date", "time"])


def downgrade() -> None:
    op.drop_index("ix_reservations_slot", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("admin_users")
    op.drop_table("restaurants")
    calendar_status.drop(op.get_bind(), checkfirst=True)
