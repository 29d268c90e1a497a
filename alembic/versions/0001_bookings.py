"""bookings

Revision ID: 0001_bookings
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_bookings"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("dob", sa.Date(), nullable=False),
        sa.Column("govt_id_type", sa.String(length=50), nullable=False),
        sa.Column("govt_id_number", sa.String(length=100), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("child_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("relationship_type", sa.String(length=50), nullable=True),
        sa.Column(
            "additional_guests",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            server_default="[]",
        ),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("origin_ip", sa.String(length=45), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("check_out_date > check_in_date", name="ck_bookings_date_order"),
        sa.CheckConstraint("guest_count >= 1", name="ck_bookings_guest_count"),
        sa.CheckConstraint("child_count >= 0", name="ck_bookings_child_count"),
    )
    op.create_index("ix_bookings_email", "bookings", ["email"])
    op.create_index("ix_bookings_check_in_date", "bookings", ["check_in_date"])
    op.create_index("ix_bookings_cancelled", "bookings", ["cancelled"])

def downgrade() -> None:
    op.drop_index("ix_bookings_cancelled", table_name="bookings")
    op.drop_index("ix_bookings_check_in_date", table_name="bookings")
    op.drop_index("ix_bookings_email", table_name="bookings")
    op.drop_table("bookings")
