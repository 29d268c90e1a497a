from datetime import date
from sqlalchemy import select
from sqlalchemy.orm import Session
from app.models.booking import Booking


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open [start, end): a checkout day is free for the next check-in."""
    return a_start < b_end and b_start < a_end


def find_overlapping(db: Session, check_in: date, check_out: date, exclude_id: int | None = None) -> Booking | None:
    stmt = select(Booking).where(
        Booking.cancelled.is_(False),
        Booking.check_in_date < check_out,
        Booking.check_out_date > check_in,
    )
    if exclude_id is not None:
        stmt = stmt.where(Booking.id != exclude_id)
    return db.execute(stmt.order_by(Booking.check_in_date).limit(1)).scalar_one_or_none()


def active_ranges(db: Session) -> list[tuple[date, date]]:
    rows = db.execute(
        select(Booking.check_in_date, Booking.check_out_date)
        .where(Booking.cancelled.is_(False))
        .order_by(Booking.check_in_date)
    ).all()
    return [(r[0], r[1]) for r in rows]
