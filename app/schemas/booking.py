from datetime import date
from pydantic import BaseModel, ConfigDict
from typing import List, Optional

# Input fields are optional so missing values reach the validator and come back as MissingField.

class GuestIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    dob: Optional[date] = None
    govtIdType: Optional[str] = None
    govtIdNumber: Optional[str] = None

class AcknowledgeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[date] = None
    govtIdType: Optional[str] = None
    govtIdNumber: Optional[str] = None
    guestCount: Optional[int] = None
    childCount: Optional[int] = 0
    relationshipType: Optional[str] = None
    additionalGuests: Optional[List[GuestIn]] = None
    checkInDate: Optional[date] = None
    checkOutDate: Optional[date] = None

class OperatorIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    operatorSecret: Optional[str] = None
    bookingId: Optional[int] = None

class CancelIn(OperatorIn):
    pass

class UpdateGovtIdIn(OperatorIn):
    govtIdNumber: Optional[str] = None
    guestIndex: Optional[int] = None

class UpdateDobIn(OperatorIn):
    dob: Optional[date] = None
    guestIndex: Optional[int] = None

class GuestOut(BaseModel):
    name: str
    dob: str
    govtIdType: str
    govtIdNumber: str

class BookingOut(BaseModel):
    id: int
    name: str
    email: str
    dob: str
    govtIdType: str
    govtIdNumber: str
    guestCount: int
    childCount: int
    relationshipType: Optional[str] = None
    additionalGuests: List[GuestOut] = []
    checkInDate: str
    checkOutDate: str
    cancelled: bool = False
    cancelledAt: Optional[str] = None
    submittedAt: str
    originIp: Optional[str] = None

class DateRangeOut(BaseModel):
    checkInDate: str
    checkOutDate: str
