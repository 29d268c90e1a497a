import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import DateConflict, InvalidGuestIndex, MissingField, NotFound, StoreUnavailable, UpdateConflict
from app.core.security import require_operator
from app.models.booking import Booking, OVERLAP_GUARD_NAME
from app.schemas.booking import AcknowledgeIn
from app.services.audit_service import log_operator_action
from app.services.overlap import active_ranges, find_overlapping
from app.services.validation import check_age, normalize_email, normalize_govt_id, validate_submission

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    """Booking acceptance and lifecycle for a single bookable unit.

    Holds no booking state between calls; every operation opens its own session
    from the injected factory. Submissions run the overlap scan and the insert in
    one transaction, and the store's overlap guard (migration 0002) decides races
    between concurrent submitters. Operator writes use the row ``version`` for
    optimistic locking and retry up to ``max_update_attempts`` times.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        operator_secret: str,
        clock: Callable[[], datetime] = _utcnow,
        max_update_attempts: int = 3,
    ):
        self._session_factory = session_factory
        self._operator_secret = operator_secret
        self._clock = clock
        self.max_update_attempts = max(1, max_update_attempts)

    def today(self) -> date:
        return self._clock().date()

    @contextmanager
    def _session(self):
        db: Session = self._session_factory()
        try:
            yield db
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            logger.error("store unavailable: %s", e)
            raise StoreUnavailable() from e
        finally:
            db.close()

    # submissions

    def submit(self, body: AcknowledgeIn, origin_ip: str | None = None) -> Booking:
        values = validate_submission(body, self.today())
        check_in, check_out = values["check_in_date"], values["check_out_date"]

        with self._session() as db:
            clash = find_overlapping(db, check_in, check_out)
            if clash is not None:
                logger.info("rejected %s..%s: overlaps booking %s", check_in, check_out, clash.id)
                raise DateConflict()

            booking = Booking(**values, origin_ip=origin_ip, submitted_at=self._clock())
            db.add(booking)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if OVERLAP_GUARD_NAME in str(e.orig):
                    logger.info("rejected %s..%s: overlap guard fired at commit", check_in, check_out)
                    raise DateConflict() from e
                raise

        logger.info("booking %s accepted for %s..%s", booking.id, check_in, check_out)
        return booking

    # reads

    def list_bookings(self, credential: str | None) -> list[Booking]:
        require_operator(credential, self._operator_secret)
        with self._session() as db:
            stmt = select(Booking).order_by(Booking.submitted_at.desc(), Booking.id.desc())
            return list(db.execute(stmt).scalars().all())

    def blocked_dates(self) -> list[tuple[date, date]]:
        with self._session() as db:
            return active_ranges(db)

    def email_exists(self, email: str) -> bool:
        """Legacy one-booking-per-email check."""
        with self._session() as db:
            row = db.execute(
                select(Booking.id).where(Booking.email == normalize_email(email)).limit(1)
            ).first()
            return row is not None

    # operator writes

    def cancel(self, credential: str | None, booking_id: int | None) -> tuple[Booking, bool]:
        """Returns the booking and whether this call freed its dates."""
        require_operator(credential, self._operator_secret)
        if booking_id is None:
            raise MissingField("bookingId is required")

        def apply(db: Session, b: Booking):
            if b.cancelled:
                return b, False
            b.cancelled = True
            b.cancelled_at = self._clock()
            log_operator_action(db, "booking.cancel", b.id,
                                {"checkInDate": b.check_in_date.isoformat(), "checkOutDate": b.check_out_date.isoformat()})
            return b, True

        booking, changed = self._mutate(booking_id, "cancel", apply)
        if changed:
            logger.info("booking %s cancelled, freed %s..%s", booking.id, booking.check_in_date, booking.check_out_date)
        else:
            logger.info("booking %s was already cancelled", booking.id)
        return booking, changed

    def correct_govt_id(self, credential: str | None, booking_id: int | None, govt_id_number: str | None,
                        guest_index: int | None = None) -> Booking:
        require_operator(credential, self._operator_secret)
        if booking_id is None:
            raise MissingField("bookingId is required")
        if govt_id_number is None or not govt_id_number.strip():
            raise MissingField("govtIdNumber is required")

        def apply(db: Session, b: Booking):
            if guest_index is None:
                b.govt_id_number = normalize_govt_id(b.govt_id_type, govt_id_number)
            else:
                guest = b.additional_guests[guest_index]
                value = normalize_govt_id(guest["govtIdType"], govt_id_number, f"Guest {guest_index + 2}")
                self._replace_guest(b, guest_index, govtIdNumber=value)
            log_operator_action(db, "booking.update_govt_id", b.id, {"guestIndex": guest_index})
            return b

        booking = self._mutate(booking_id, "update_govt_id", apply, guest_index)
        logger.info("booking %s: government ID corrected (guest index %s)", booking.id, guest_index)
        return booking

    def correct_dob(self, credential: str | None, booking_id: int | None, dob: date | None,
                    guest_index: int | None = None) -> Booking:
        require_operator(credential, self._operator_secret)
        if booking_id is None:
            raise MissingField("bookingId is required")
        if dob is None:
            raise MissingField("dob is required")
        check_age(dob, self.today())

        def apply(db: Session, b: Booking):
            if guest_index is None:
                b.dob = dob
            else:
                self._replace_guest(b, guest_index, dob=dob.isoformat())
            log_operator_action(db, "booking.update_dob", b.id, {"guestIndex": guest_index})
            return b

        booking = self._mutate(booking_id, "update_dob", apply, guest_index)
        logger.info("booking %s: date of birth corrected (guest index %s)", booking.id, guest_index)
        return booking

    @staticmethod
    def _replace_guest(b: Booking, index: int, **changes) -> None:
        guests = list(b.additional_guests or [])
        guests[index] = {**guests[index], **changes}
        b.additional_guests = guests

    def _mutate(self, booking_id: int, action: str, apply, guest_index: int | None = None):
        """Read, change and commit one booking; re-read and retry when its version moved underneath us."""
        for attempt in range(1, self.max_update_attempts + 1):
            with self._session() as db:
                b = db.get(Booking, booking_id)
                if b is None:
                    raise NotFound()
                if guest_index is not None and not 0 <= guest_index < len(b.additional_guests or []):
                    raise InvalidGuestIndex(
                        f"Guest index {guest_index} is out of range for {len(b.additional_guests or [])} additional guest(s)"
                    )
                result = apply(db, b)
                try:
                    db.commit()
                    return result
                except StaleDataError:
                    db.rollback()
                    logger.warning("booking %s changed during %s (attempt %d/%d)",
                                   booking_id, action, attempt, self.max_update_attempts)
        raise UpdateConflict()
