from fastapi import APIRouter, Depends
from app.api.deps import client_ip, get_booking_service
from app.schemas.booking import AcknowledgeIn, DateRangeOut
from app.services.booking_service import BookingService

router = APIRouter(tags=["public"])


@router.post("/acknowledge")
def acknowledge(body: AcknowledgeIn, ip: str | None = Depends(client_ip),
                svc: BookingService = Depends(get_booking_service)):
    booking = svc.submit(body, origin_ip=ip)
    return {
        "success": True,
        "message": "Acknowledgment recorded successfully",
        "data": {"id": booking.id, "submittedAt": booking.submitted_at.isoformat()},
    }


@router.get("/blocked-dates")
def blocked_dates(svc: BookingService = Depends(get_booking_service)):
    """Date ranges held by active bookings; the checkout day itself stays bookable."""
    ranges = [
        DateRangeOut(checkInDate=ci.isoformat(), checkOutDate=co.isoformat())
        for ci, co in svc.blocked_dates()
    ]
    return {"success": True, "message": f"{len(ranges)} blocked range(s)", "data": ranges}


@router.get("/check-email/{email}")
def check_email(email: str, svc: BookingService = Depends(get_booking_service)):
    exists = svc.email_exists(email)
    return {
        "success": True,
        "message": "Email has an existing booking" if exists else "No booking for this email",
        "data": {"exists": exists},
    }
