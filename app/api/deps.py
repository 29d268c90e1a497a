from fastapi import Request
from app.services.booking_service import BookingService


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def operator_header(request: Request) -> str | None:
    return request.headers.get(request.app.state.settings.OPERATOR_HEADER)


def client_ip(request: Request) -> str | None:
    """Best-effort origin address: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first[:45]
    return request.client.host if request.client else None
