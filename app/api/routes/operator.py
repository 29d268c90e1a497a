from fastapi import APIRouter, Depends
from app.api.deps import get_booking_service, operator_header
from app.models.booking import Booking
from app.schemas.booking import BookingOut, CancelIn, GuestOut, UpdateDobIn, UpdateGovtIdIn
from app.services.booking_service import BookingService

router = APIRouter(tags=["operator"])


def booking_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id,
        name=b.name,
        email=b.email,
        dob=b.dob.isoformat(),
        govtIdType=b.govt_id_type,
        govtIdNumber=b.govt_id_number,
        guestCount=b.guest_count,
        childCount=b.child_count,
        relationshipType=b.relationship_type,
        additionalGuests=[GuestOut(**g) for g in (b.additional_guests or [])],
        checkInDate=b.check_in_date.isoformat(),
        checkOutDate=b.check_out_date.isoformat(),
        cancelled=b.cancelled,
        cancelledAt=b.cancelled_at.isoformat() if b.cancelled_at else None,
        submittedAt=b.submitted_at.isoformat(),
        originIp=b.origin_ip,
    )


@router.get("/acknowledgments")
def list_acknowledgments(secret: str | None = Depends(operator_header),
                         svc: BookingService = Depends(get_booking_service)):
    items = [booking_out(b) for b in svc.list_bookings(secret)]
    return {"success": True, "message": f"{len(items)} booking(s)", "data": items}


@router.post("/cancel-booking")
def cancel_booking(body: CancelIn, svc: BookingService = Depends(get_booking_service)):
    b, changed = svc.cancel(body.operatorSecret, body.bookingId)
    return {
        "success": True,
        "message": "Booking cancelled" if changed else "Booking was already cancelled",
        "data": {
            "id": b.id,
            "checkInDate": b.check_in_date.isoformat(),
            "checkOutDate": b.check_out_date.isoformat(),
            "freed": changed,
        },
    }


@router.post("/update-govt-id")
def update_govt_id(body: UpdateGovtIdIn, svc: BookingService = Depends(get_booking_service)):
    b = svc.correct_govt_id(body.operatorSecret, body.bookingId, body.govtIdNumber, body.guestIndex)
    return {
        "success": True,
        "message": "Government ID updated",
        "data": {"id": b.id, "guestIndex": body.guestIndex},
    }


@router.post("/update-dob")
def update_dob(body: UpdateDobIn, svc: BookingService = Depends(get_booking_service)):
    b = svc.correct_dob(body.operatorSecret, body.bookingId, body.dob, body.guestIndex)
    return {
        "success": True,
        "message": "Date of birth updated",
        "data": {"id": b.id, "guestIndex": body.guestIndex},
    }
