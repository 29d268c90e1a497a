from datetime import date, datetime, timezone
from sqlalchemy import String, Integer, Date, DateTime, Boolean, JSON, CheckConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base

# Name shared by the Postgres exclusion constraint and the SQLite guard triggers
OVERLAP_GUARD_NAME = "bookings_no_overlap"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_bookings_date_order"),
        CheckConstraint("guest_count >= 1", name="ck_bookings_guest_count"),
        CheckConstraint("child_count >= 0", name="ck_bookings_child_count"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # primary guest
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), index=True)
    dob: Mapped[date] = mapped_column(Date)
    govt_id_type: Mapped[str] = mapped_column(String(50))  # Aadhar|DrivingLicense|Passport
    govt_id_number: Mapped[str] = mapped_column(String(100))

    guest_count: Mapped[int] = mapped_column(Integer, default=1)
    child_count: Mapped[int] = mapped_column(Integer, default=0)
    relationship_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # [{name, dob (ISO date), govtIdType, govtIdNumber}, ...], length guest_count - 1
    additional_guests: Mapped[list] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), default=list)

    check_in_date: Mapped[date] = mapped_column(Date, index=True)
    check_out_date: Mapped[date] = mapped_column(Date)

    cancelled: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    origin_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
