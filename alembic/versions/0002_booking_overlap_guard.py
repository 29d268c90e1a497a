"""store-level guard against overlapping active bookings

Postgres gets an exclusion constraint over daterange(check_in, check_out, '[)')
limited to rows that are not cancelled, so the checkout day stays free for the
next check-in. SQLite has no exclusion constraints; two BEFORE triggers abort
with the same name instead. Writes on SQLite are serialised by its database
lock, so the trigger check and the write cannot interleave.

Revision ID: 0002_booking_overlap_guard
Revises: 0001_bookings
Create Date: 2026-10-18
"""

from alembic import op

revision = "0002_booking_overlap_guard"
down_revision = "0001_bookings"
branch_labels = None
depends_on = None

GUARD = "bookings_no_overlap"

_SQLITE_OVERLAP = (
    "SELECT RAISE(ABORT, '" + GUARD + "') WHERE EXISTS ("
    "SELECT 1 FROM bookings b WHERE b.cancelled = 0 AND b.id IS NOT NEW.id "
    "AND b.check_in_date < NEW.check_out_date AND NEW.check_in_date < b.check_out_date);"
)

def upgrade() -> None:
    dialect = op.get_context().dialect.name
    if dialect == "postgresql":
        op.execute(
            f"ALTER TABLE bookings ADD CONSTRAINT {GUARD} "
            "EXCLUDE USING gist (daterange(check_in_date, check_out_date, '[)') WITH &&) "
            "WHERE (NOT cancelled)"
        )
    elif dialect == "sqlite":
        op.execute(
            f"CREATE TRIGGER {GUARD}_insert BEFORE INSERT ON bookings "
            f"WHEN NEW.cancelled = 0 BEGIN {_SQLITE_OVERLAP} END"
        )
        op.execute(
            f"CREATE TRIGGER {GUARD}_update BEFORE UPDATE OF check_in_date, check_out_date, cancelled ON bookings "
            f"WHEN NEW.cancelled = 0 BEGIN {_SQLITE_OVERLAP} END"
        )
    else:
        raise RuntimeError(f"no overlap guard available for dialect {dialect!r}")

def downgrade() -> None:
    dialect = op.get_context().dialect.name
    if dialect == "postgresql":
        op.execute(f"ALTER TABLE bookings DROP CONSTRAINT IF EXISTS {GUARD}")
    elif dialect == "sqlite":
        op.execute(f"DROP TRIGGER IF EXISTS {GUARD}_update")
        op.execute(f"DROP TRIGGER IF EXISTS {GUARD}_insert")
