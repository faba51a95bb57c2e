# homecare/services/bookings.py
"""
Booking lifecycle.

Creating a booking reserves the slot with a compare-and-swap
(available -> booked) in the same transaction as the booking insert. Of two
patients racing for one slot exactly one sees a changed row; the other gets
``SlotUnavailable`` and nothing of theirs is written.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from homecare.core.errors import HomecareError, InvalidTransition, SlotUnavailable
from homecare.db.rls import RowSecuritySession
from homecare.db.session import claim_write_lock
from homecare.models import Booking, BookingStatus, NurseSlot, SlotStatus
from homecare.services.slots import is_service_available, nurse_covers

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.PENDING.value:
    frozenset({BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}),
    BookingStatus.CONFIRMED.value:
    frozenset({BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value}),
}

# what happens to the slot when a booking reaches a status
SLOT_AFTER: Dict[str, str] = {
    BookingStatus.CANCELLED.value: SlotStatus.AVAILABLE.value,
    BookingStatus.COMPLETED.value: SlotStatus.COMPLETED.value,
}


def reserve_slot(rls: RowSecuritySession, slot_id: uuid.UUID) -> bool:
    """
    available -> booked, only if still available. Runs with service rights
    because slot rows are writable by their nurse alone.
    """
    with rls.elevated() as svc:
        changed = svc.update_where(
            NurseSlot,
            {
                "status": SlotStatus.BOOKED.value,
                "updated_at": datetime.utcnow()
            },
            NurseSlot.id == slot_id,
            NurseSlot.status == SlotStatus.AVAILABLE.value,
        )
    return changed == 1


def create_booking(rls: RowSecuritySession,
                   slot_id: uuid.UUID,
                   service_id: str,
                   notes: Optional[str] = None,
                   pincode: Optional[str] = None) -> Booking:
    booking_id = uuid.uuid4()
    claim_write_lock(rls.session)
    try:
        slot = rls.get_or_404(NurseSlot, slot_id, "Slot")
        if pincode:
            if not is_service_available(rls, pincode, service_id):
                raise HomecareError(
                    f"Service {service_id!r} is not offered at {pincode}")
            if not nurse_covers(rls, slot.nurse_id, pincode):
                raise HomecareError(f"This nurse does not cover {pincode}")

        booking = Booking(id=booking_id,
                          patient_id=rls.uid,
                          nurse_id=slot.nurse_id,
                          slot_id=slot.id,
                          service_id=service_id,
                          status=BookingStatus.PENDING.value,
                          notes=notes)
        if not reserve_slot(rls, slot.id):
            logger.info("booking: slot %s already taken (caller %s)",
                        slot_id, rls.uid)
            raise SlotUnavailable("Slot is no longer available")
        rls.insert(booking)
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise

    logger.info("booking %s: slot %s reserved for patient %s", booking_id,
                slot_id, rls.uid)
    return booking


def set_status(rls: RowSecuritySession, booking_id: uuid.UUID,
               status: str) -> Booking:
    """Move a booking along TRANSITIONS; either party may do it."""
    claim_write_lock(rls.session)
    try:
        booking = rls.get_or_404(Booking, booking_id, "Booking")
        current = booking.status
        if status not in TRANSITIONS.get(current, frozenset()):
            raise InvalidTransition(
                f"Cannot move booking from {current} to {status}")

        changed = rls.update_where(
            Booking,
            {
                "status": status,
                "updated_at": datetime.utcnow()
            },
            Booking.id == booking_id,
            Booking.status == current,
        )
        if changed != 1:
            raise InvalidTransition("Booking was changed by someone else")

        slot_status = SLOT_AFTER.get(status)
        if slot_status:
            with rls.elevated() as svc:
                svc.update_where(
                    NurseSlot,
                    {
                        "status": slot_status,
                        "updated_at": datetime.utcnow()
                    },
                    NurseSlot.id == booking.slot_id,
                    NurseSlot.status == SlotStatus.BOOKED.value,
                )
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise

    rls.session.refresh(booking)
    logger.info("booking %s: %s -> %s by %s", booking_id, current, status,
                rls.uid)
    return booking


def list_bookings(rls: RowSecuritySession,
                  status: Optional[str] = None) -> List[Booking]:
    criteria = [Booking.status == status] if status else []
    return rls.all(Booking, *criteria, order_by=Booking.created_at.desc())
