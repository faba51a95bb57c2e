# homecare/api/routes_bookings.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from homecare.api.deps import get_user_rls
from homecare.api.response import ok, ok_rows
from homecare.db.rls import RowSecuritySession
from homecare.schemas.booking import (
    BookingCreate,
    BookingOut,
    BookingStatusUpdate,
)
from homecare.services import bookings

router = APIRouter(tags=["bookings"])


@router.get("/bookings")
def list_bookings(
        status: Optional[str] = Query(None),
        rls: RowSecuritySession = Depends(get_user_rls),
):
    return ok_rows(bookings.list_bookings(rls, status=status), BookingOut)


@router.post("/bookings")
def create_booking(
        payload: BookingCreate,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    booking = bookings.create_booking(rls,
                                      payload.slot_id,
                                      payload.service_id,
                                      notes=payload.notes,
                                      pincode=payload.pincode)
    return ok(BookingOut.model_validate(booking), status_code=201)


@router.patch("/bookings/{booking_id}")
def update_booking_status(
        booking_id: UUID,
        payload: BookingStatusUpdate,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    booking = bookings.set_status(rls, booking_id, payload.status)
    return ok(BookingOut.model_validate(booking))
