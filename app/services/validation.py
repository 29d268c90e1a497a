"""Submission checks that run before anything touches the store.

Everything here is pure: callers pass ``today`` explicitly and get back either
normalised column values or a ``ValidationFailed`` subclass.
"""
import re
from datetime import date

from app.core.errors import (
    GuestCountMismatch,
    InvalidDateRange,
    InvalidEmail,
    InvalidGovtId,
    MissingField,
    MissingRelationship,
    UnderageOrInvalidDOB,
)
from app.schemas.booking import AcknowledgeIn, GuestIn

MIN_AGE = 18

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# type -> (pattern after normalisation, upper-case first, message)
GOVT_ID_RULES = {
    "Aadhar": (re.compile(r"[0-9]{12}"), False, "Aadhar number must be exactly 12 digits"),
    "DrivingLicense": (re.compile(r"[A-Z0-9]{8,20}"), True, "Driving license must be 8-20 letters or digits"),
    "Passport": (re.compile(r"[A-Z0-9]{6,10}"), True, "Passport number must be 6-10 letters or digits"),
}

_WHITESPACE = re.compile(r"\s+")


def _prefix(who: str) -> str:
    return f"{who}: " if who else ""


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_email(email: str) -> str:
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise InvalidEmail()
    return email


def age_on(dob: date, today: date) -> int:
    """Whole calendar years between dob and today."""
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return years


def check_age(dob: date, today: date, who: str = "") -> date:
    if dob >= today:
        raise UnderageOrInvalidDOB(f"{_prefix(who)}Date of birth must be in the past")
    if age_on(dob, today) < MIN_AGE:
        raise UnderageOrInvalidDOB(f"{_prefix(who)}Guests must be at least {MIN_AGE} years old")
    return dob


def normalize_govt_id(id_type: str, id_number: str, who: str = "") -> str:
    rule = GOVT_ID_RULES.get(id_type)
    if rule is None:
        raise InvalidGovtId(f"{_prefix(who)}Unknown government ID type")
    pattern, upper, message = rule
    value = _WHITESPACE.sub("", id_number)
    if upper:
        value = value.upper()
    if not pattern.fullmatch(value):
        raise InvalidGovtId(f"{_prefix(who)}{message}")
    return value


def validate_guest(guest: GuestIn, ordinal: int, today: date) -> dict:
    who = f"Guest {ordinal}"
    for field in ("name", "dob", "govtIdType", "govtIdNumber"):
        if _blank(getattr(guest, field)):
            raise MissingField(f"{who}: {field} is required")
    check_age(guest.dob, today, who)
    return {
        "name": guest.name.strip(),
        "dob": guest.dob.isoformat(),
        "govtIdType": guest.govtIdType,
        "govtIdNumber": normalize_govt_id(guest.govtIdType, guest.govtIdNumber, who),
    }


def check_date_range(check_in: date, check_out: date, today: date) -> None:
    if check_in < today:
        raise InvalidDateRange("Check-in date cannot be in the past")
    if check_out <= check_in:
        raise InvalidDateRange("Check-out date must be after check-in date")


def validate_submission(body: AcknowledgeIn, today: date) -> dict:
    """Return Booking column values for a valid submission, else raise."""
    required = ("name", "email", "dob", "govtIdType", "govtIdNumber", "guestCount", "checkInDate", "checkOutDate")
    for field in required:
        if _blank(getattr(body, field)):
            raise MissingField(f"{field} is required")

    email = check_email(body.email)
    check_age(body.dob, today)
    govt_id_number = normalize_govt_id(body.govtIdType, body.govtIdNumber)

    guest_count = body.guestCount
    child_count = body.childCount or 0
    if guest_count < 1:
        raise GuestCountMismatch("Guest count must be at least 1")
    if child_count < 0:
        raise GuestCountMismatch("Child count cannot be negative")

    relationship = None
    if guest_count + child_count > 1:
        if _blank(body.relationshipType):
            raise MissingRelationship()
        relationship = body.relationshipType.strip()

    extra = body.additionalGuests or []
    if len(extra) != guest_count - 1:
        raise GuestCountMismatch(
            f"Expected {guest_count - 1} additional guest(s) for {guest_count} adults, got {len(extra)}"
        )
    # primary guest is Guest 1
    additional = [validate_guest(g, i + 2, today) for i, g in enumerate(extra)]

    check_date_range(body.checkInDate, body.checkOutDate, today)

    return {
        "name": body.name.strip(),
        "email": email,
        "dob": body.dob,
        "govt_id_type": body.govtIdType,
        "govt_id_number": govt_id_number,
        "guest_count": guest_count,
        "child_count": child_count,
        "relationship_type": relationship,
        "additional_guests": additional,
        "check_in_date": body.checkInDate,
        "check_out_date": body.checkOutDate,
    }
