# homecare/schemas/booking.py
from datetime import date, datetime, time
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

SlotStatusName = Literal["available", "booked", "completed", "cancelled"]
BookingStatusName = Literal["pending", "confirmed", "completed", "cancelled"]


# ---------- Service areas ----------
class ServiceAreaIn(BaseModel):
    pincode: str = Field(..., min_length=3, max_length=12)
    service_id: str = Field(..., min_length=1)
    is_available: bool = True


class ServiceAreaOut(ServiceAreaIn):
    id: UUID

    model_config = ConfigDict(from_attributes=True)


class CoverageIn(BaseModel):
    pincode: str = Field(..., min_length=3, max_length=12)


class CoverageOut(BaseModel):
    id: UUID
    nurse_id: UUID
    pincode: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# ---------- Slots ----------
class SlotCreate(BaseModel):
    date: date
    start_time: time
    # defaults to start_time + 1h
    end_time: Optional[time] = None


class SlotOut(BaseModel):
    id: UUID
    nurse_id: UUID
    date: date
    start_time: time
    end_time: time
    status: SlotStatusName

    model_config = ConfigDict(from_attributes=True)


# ---------- Bookings ----------
class BookingCreate(BaseModel):
    slot_id: UUID
    service_id: str = Field(..., min_length=1)
    notes: Optional[str] = None
    # when given, the service must be offered and the nurse active there
    pincode: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatusName


class BookingOut(BaseModel):
    id: UUID
    patient_id: UUID
    nurse_id: UUID
    slot_id: UUID
    service_id: str
    status: BookingStatusName
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StatsOut(BaseModel):
    nurse_count: int
    patient_count: int
