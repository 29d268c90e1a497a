import json
import threading
from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    DateConflict,
    InvalidGovtId,
    InvalidGuestIndex,
    MissingField,
    NotFound,
    StoreUnavailable,
    Unauthorized,
    UnderageOrInvalidDOB,
    UpdateConflict,
)
from app.core.config import Settings
from app.db.session import create_db_engine, make_session_factory
from app.models.audit_log import AuditLog
from app.models.booking import Booking
from app.services import booking_service as booking_service_module
from app.services.booking_service import BookingService
from app.services.overlap import ranges_overlap

from conftest import NOW, OPERATOR_SECRET, TODAY


def _load(session_factory, booking_id) -> Booking:
    with session_factory() as db:
        return db.get(Booking, booking_id)


def _active(session_factory) -> list[Booking]:
    with session_factory() as db:
        return list(db.execute(select(Booking).where(Booking.cancelled.is_(False))).scalars())


class TestSubmit:

    def test_accepted_booking_is_persisted(self, service, session_factory, make_submission):
        booking = service.submit(make_submission(), origin_ip="203.0.113.9")

        assert booking.id is not None
        assert booking.submitted_at == NOW
        stored = _load(session_factory, booking.id)
        assert stored.email == "asha.menon@example.com"
        assert stored.govt_id_number == "123456789012"
        assert stored.origin_ip == "203.0.113.9"
        assert stored.cancelled is False
        assert stored.check_in_date == TODAY + timedelta(days=10)

    def test_identical_range_rejected(self, service, session_factory, make_submission):
        service.submit(make_submission(offset=10, nights=3))
        with pytest.raises(DateConflict):
            service.submit(make_submission(offset=10, nights=3, email="other@example.com"))
        assert len(_active(session_factory)) == 1

    @pytest.mark.parametrize("offset,nights", [(8, 3), (11, 1), (12, 5), (9, 10)])
    def test_overlapping_ranges_rejected(self, service, make_submission, offset, nights):
        service.submit(make_submission(offset=10, nights=3))
        with pytest.raises(DateConflict):
            service.submit(make_submission(offset=offset, nights=nights))

    def test_checkout_day_can_be_next_check_in(self, service, make_submission):
        service.submit(make_submission(offset=10, nights=3))
        service.submit(make_submission(offset=13, nights=2))
        service.submit(make_submission(offset=7, nights=3))
        assert len(service.blocked_dates()) == 3

    def test_validation_runs_before_store(self, service, session_factory, make_submission):
        with pytest.raises(MissingField):
            service.submit(make_submission(name=None))
        assert _active(session_factory) == []

    def test_guard_violation_at_commit_is_a_date_conflict(self, service, session_factory, make_submission, monkeypatch):
        service.submit(make_submission(offset=10, nights=3))
        # skip the pre-commit scan so only the store guard stands in the way
        monkeypatch.setattr(booking_service_module, "find_overlapping", lambda *a, **kw: None)

        with pytest.raises(DateConflict):
            service.submit(make_submission(offset=11, nights=3))
        assert len(_active(session_factory)) == 1

    def test_concurrent_overlapping_submissions(self, session_factory, make_submission):
        services = [BookingService(session_factory, OPERATOR_SECRET, clock=lambda: NOW) for _ in range(2)]
        bodies = [make_submission(offset=20, nights=4), make_submission(offset=22, nights=4)]
        barrier = threading.Barrier(2)
        outcomes = []

        def submit(svc, body):
            barrier.wait()
            try:
                outcomes.append(svc.submit(body))
            except DateConflict as e:
                outcomes.append(e)

        threads = [threading.Thread(target=submit, args=pair) for pair in zip(services, bodies)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(outcomes) == 2
        assert sum(isinstance(o, Booking) for o in outcomes) == 1
        assert sum(isinstance(o, DateConflict) for o in outcomes) == 1
        assert len(_active(session_factory)) == 1

    def test_active_bookings_never_overlap(self, service, session_factory, make_submission):
        for offset, nights in [(1, 3), (2, 2), (4, 1), (5, 6), (3, 1), (11, 2), (10, 2), (0, 1)]:
            try:
                service.submit(make_submission(offset=offset, nights=nights))
            except DateConflict:
                pass
        active = _active(session_factory)
        for a in active:
            for b in active:
                if a.id != b.id:
                    assert not ranges_overlap(a.check_in_date, a.check_out_date, b.check_in_date, b.check_out_date)


class TestReads:

    def test_blocked_dates_skip_cancelled(self, service, make_submission):
        first = service.submit(make_submission(offset=5, nights=2))
        service.submit(make_submission(offset=1, nights=2))
        service.cancel(OPERATOR_SECRET, first.id)

        assert service.blocked_dates() == [(TODAY + timedelta(days=1), TODAY + timedelta(days=3))]

    def test_list_requires_operator(self, service, make_submission):
        service.submit(make_submission())
        with pytest.raises(Unauthorized):
            service.list_bookings(None)
        with pytest.raises(Unauthorized):
            service.list_bookings("guess")
        assert len(service.list_bookings(OPERATOR_SECRET)) == 1

    def test_list_includes_cancelled(self, service, make_submission):
        b = service.submit(make_submission(offset=3))
        service.cancel(OPERATOR_SECRET, b.id)
        service.submit(make_submission(offset=3))
        listed = service.list_bookings(OPERATOR_SECRET)
        assert sorted(x.cancelled for x in listed) == [False, True]

    def test_email_exists_is_case_insensitive(self, service, make_submission):
        service.submit(make_submission())
        assert service.email_exists("ASHA.MENON@example.com")
        assert not service.email_exists("nobody@example.com")


class TestCancel:

    def test_cancel_then_rebook_same_range(self, service, session_factory, make_submission):
        b = service.submit(make_submission(offset=10, nights=3))
        cancelled, changed = service.cancel(OPERATOR_SECRET, b.id)

        assert changed is True
        assert (cancelled.check_in_date, cancelled.check_out_date) == (b.check_in_date, b.check_out_date)
        again = service.submit(make_submission(offset=10, nights=3))
        assert again.id != b.id
        stored = _load(session_factory, b.id)
        assert stored.cancelled is True
        assert stored.cancelled_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)

    def test_cancel_twice_is_not_an_error(self, service, make_submission):
        b = service.submit(make_submission())
        service.cancel(OPERATOR_SECRET, b.id)
        _, changed = service.cancel(OPERATOR_SECRET, b.id)
        assert changed is False

    def test_cancel_unknown_booking(self, service):
        with pytest.raises(NotFound):
            service.cancel(OPERATOR_SECRET, 999)

    def test_cancel_without_booking_id(self, service):
        with pytest.raises(MissingField):
            service.cancel(OPERATOR_SECRET, None)

    def test_cancel_with_bad_secret_changes_nothing(self, service, session_factory, make_submission):
        b = service.submit(make_submission())
        with pytest.raises(Unauthorized):
            service.cancel("wrong", b.id)
        assert _load(session_factory, b.id).cancelled is False

    def test_cancel_is_audited(self, service, session_factory, make_submission):
        b = service.submit(make_submission())
        service.cancel(OPERATOR_SECRET, b.id)
        service.cancel(OPERATOR_SECRET, b.id)
        with session_factory() as db:
            rows = db.execute(select(AuditLog).where(AuditLog.action == "booking.cancel")).scalars().all()
        assert len(rows) == 1
        assert rows[0].entity_id == str(b.id)
        assert (rows[0].actor, rows[0].entity_type) == ("operator", "booking")
        assert json.loads(rows[0].details_json)["checkInDate"] == b.check_in_date.isoformat()


@pytest.fixture
def group_booking(service, make_submission, make_guest):
    return service.submit(make_submission(
        guestCount=3,
        relationshipType="Friends",
        additionalGuests=[
            make_guest(),
            make_guest(name="Meera Nair", govtIdType="DrivingLicense", govtIdNumber="KL0720190001234"),
        ],
    ))


class TestCorrections:

    def test_primary_govt_id(self, service, session_factory, group_booking):
        service.correct_govt_id(OPERATOR_SECRET, group_booking.id, "2222 3333 4444")
        assert _load(session_factory, group_booking.id).govt_id_number == "222233334444"

    def test_additional_guest_govt_id(self, service, session_factory, group_booking):
        service.correct_govt_id(OPERATOR_SECRET, group_booking.id, "kl07 2020 0005555", guest_index=1)
        guests = _load(session_factory, group_booking.id).additional_guests
        assert guests[1]["govtIdNumber"] == "KL0720200005555"
        assert guests[1]["name"] == "Meera Nair"
        assert guests[0]["govtIdNumber"] == "K1234567"

    def test_govt_id_checked_against_guest_type(self, service, session_factory, group_booking):
        with pytest.raises(InvalidGovtId):
            service.correct_govt_id(OPERATOR_SECRET, group_booking.id, "123", guest_index=0)
        assert _load(session_factory, group_booking.id).additional_guests[0]["govtIdNumber"] == "K1234567"

    @pytest.mark.parametrize("index", [5, 2, -1])
    def test_guest_index_out_of_range(self, service, group_booking, index):
        with pytest.raises(InvalidGuestIndex):
            service.correct_govt_id(OPERATOR_SECRET, group_booking.id, "K7654321", guest_index=index)

    def test_primary_dob(self, service, session_factory, group_booking):
        service.correct_dob(OPERATOR_SECRET, group_booking.id, date(1985, 1, 20))
        assert _load(session_factory, group_booking.id).dob == date(1985, 1, 20)

    def test_additional_guest_dob(self, service, session_factory, group_booking):
        service.correct_dob(OPERATOR_SECRET, group_booking.id, date(1979, 7, 4), guest_index=0)
        assert _load(session_factory, group_booking.id).additional_guests[0]["dob"] == "1979-07-04"

    def test_underage_dob_correction_rejected(self, service, session_factory, group_booking):
        with pytest.raises(UnderageOrInvalidDOB):
            service.correct_dob(OPERATOR_SECRET, group_booking.id, TODAY - timedelta(days=400), guest_index=0)
        assert _load(session_factory, group_booking.id).additional_guests[0]["dob"] == "1988-11-02"

    def test_corrections_require_operator(self, service, session_factory, group_booking):
        with pytest.raises(Unauthorized):
            service.correct_dob(None, group_booking.id, date(1985, 1, 20))
        with pytest.raises(Unauthorized):
            service.correct_govt_id("nope", group_booking.id, "222233334444")
        stored = _load(session_factory, group_booking.id)
        assert stored.dob == date(1990, 5, 17)
        assert stored.govt_id_number == "123456789012"

    def test_correction_unknown_booking(self, service):
        with pytest.raises(NotFound):
            service.correct_dob(OPERATOR_SECRET, 4242, date(1985, 1, 20))

    def test_corrections_are_audited_without_values(self, service, session_factory, group_booking):
        service.correct_govt_id(OPERATOR_SECRET, group_booking.id, "K7654321", guest_index=0)
        with session_factory() as db:
            row = db.execute(select(AuditLog).where(AuditLog.action == "booking.update_govt_id")).scalar_one()
        assert json.loads(row.details_json) == {"guestIndex": 0}
        assert "K7654321" not in row.details_json


def _stale_commits(session_factory, failures: int):
    """Session factory whose first `failures` commits behave like a lost optimistic-lock race."""
    remaining = {"n": failures}

    def make():
        db = session_factory()
        real_commit = db.commit

        def commit():
            if remaining["n"] > 0:
                remaining["n"] -= 1
                raise StaleDataError("row version changed")
            real_commit()

        db.commit = commit
        return db

    return make


class TestOptimisticRetry:

    def test_retries_within_budget(self, session_factory, make_submission):
        svc = BookingService(_stale_commits(session_factory, 2), OPERATOR_SECRET, clock=lambda: NOW,
                             max_update_attempts=3)
        b = BookingService(session_factory, OPERATOR_SECRET, clock=lambda: NOW).submit(make_submission())

        _, changed = svc.cancel(OPERATOR_SECRET, b.id)
        assert changed is True
        assert _load(session_factory, b.id).cancelled is True

    def test_exhausted_budget_raises_update_conflict(self, session_factory, make_submission):
        svc = BookingService(_stale_commits(session_factory, 3), OPERATOR_SECRET, clock=lambda: NOW,
                             max_update_attempts=3)
        b = BookingService(session_factory, OPERATOR_SECRET, clock=lambda: NOW).submit(make_submission())

        with pytest.raises(UpdateConflict):
            svc.correct_dob(OPERATOR_SECRET, b.id, date(1985, 1, 20))
        assert _load(session_factory, b.id).dob == date(1990, 5, 17)

    def test_version_moves_on_each_write(self, service, session_factory, make_submission):
        b = service.submit(make_submission())
        assert _load(session_factory, b.id).version == 1
        service.correct_dob(OPERATOR_SECRET, b.id, date(1985, 1, 20))
        service.cancel(OPERATOR_SECRET, b.id)
        assert _load(session_factory, b.id).version == 3


class TestStoreFailures:

    @pytest.fixture
    def unreachable_service(self, tmp_path):
        settings = Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'missing' / 'bookings.db'}",
                            OPERATOR_SECRET=OPERATOR_SECRET, _env_file=None)
        engine = create_db_engine(settings)
        yield BookingService(make_session_factory(engine), OPERATOR_SECRET, clock=lambda: NOW)
        engine.dispose()

    def test_reads_raise_store_unavailable(self, unreachable_service):
        with pytest.raises(StoreUnavailable):
            unreachable_service.blocked_dates()
        with pytest.raises(StoreUnavailable):
            unreachable_service.email_exists("asha.menon@example.com")

    def test_submit_raises_store_unavailable(self, unreachable_service, make_submission):
        with pytest.raises(StoreUnavailable) as exc:
            unreachable_service.submit(make_submission())
        assert "unable to open" not in exc.value.message

    def test_operator_write_raises_store_unavailable(self, unreachable_service):
        with pytest.raises(StoreUnavailable):
            unreachable_service.cancel(OPERATOR_SECRET, 1)

    def test_non_guard_integrity_error_propagates(self, service, session_factory, make_submission, monkeypatch):
        real_validate = booking_service_module.validate_submission
        monkeypatch.setattr(booking_service_module, "validate_submission",
                            lambda body, today: {**real_validate(body, today), "child_count": -1})

        with pytest.raises(IntegrityError):
            service.submit(make_submission())
        assert _active(session_factory) == []
