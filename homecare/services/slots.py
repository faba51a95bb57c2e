# homecare/services/slots.py
from __future__ import annotations

import logging
import uuid
from datetime import date as date_t, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy import select

from homecare.core.errors import Conflict, Forbidden, SlotDurationError, SlotUnavailable
from homecare.db.rls import RowSecuritySession
from homecare.db.session import claim_write_lock
from homecare.models import (
    NurseProfile,
    NurseServiceArea,
    NurseSlot,
    SLOT_LENGTH,
    ServiceArea,
    SlotStatus,
)

logger = logging.getLogger(__name__)

_LIVE_SLOT = (SlotStatus.AVAILABLE.value, SlotStatus.BOOKED.value)


def slot_window(start: time, end: Optional[time] = None) -> Tuple[time, time]:
    """
    Slots are exactly one hour on a single day. `end` defaults to
    start + 1h; anything else is rejected before the CHECK would be.
    """
    day = datetime.today().date()
    start_dt = datetime.combine(day, start)
    end_dt = start_dt + SLOT_LENGTH
    if end_dt.date() != day:
        raise SlotDurationError("Slot must end on the day it starts")
    if end is not None and end != end_dt.time():
        raise SlotDurationError("Slots are exactly one hour long")
    return start, end_dt.time()


def _require_nurse(rls: RowSecuritySession, lock: bool = False) -> NurseProfile:
    """
    The caller's nurse row. With `lock` it is held FOR UPDATE, which
    serialises one nurse's slot publishing (a no-op on SQLite, where
    claim_write_lock already serialises writers).
    """
    nurse = None
    if rls.uid:
        stmt = rls.query(NurseProfile, NurseProfile.id == rls.uid)
        if lock:
            stmt = stmt.with_for_update()
        nurse = rls.session.execute(stmt).scalars().first()
    if nurse is None:
        raise Forbidden("Only nurses can manage coverage and slots")
    return nurse


# =========================================================
# SERVICE AREAS (pincode x service)
# =========================================================
def list_service_areas(rls: RowSecuritySession,
                       pincode: Optional[str] = None) -> List[ServiceArea]:
    criteria = [ServiceArea.pincode == pincode] if pincode else []
    return rls.all(ServiceArea,
                   *criteria,
                   order_by=(ServiceArea.pincode, ServiceArea.service_id))


def is_service_available(rls: RowSecuritySession, pincode: str,
                         service_id: str) -> bool:
    area = rls.first(ServiceArea, ServiceArea.pincode == pincode,
                     ServiceArea.service_id == service_id)
    return bool(area and area.is_available)


def upsert_service_area(rls: RowSecuritySession, pincode: str,
                        service_id: str, is_available: bool) -> ServiceArea:
    """
    No policy grants writes on service_areas; only the service role gets
    past `rls.insert` / `rls.update` here.
    """
    claim_write_lock(rls.session)
    try:
        area = rls.first(ServiceArea, ServiceArea.pincode == pincode,
                         ServiceArea.service_id == service_id)
        if area is None:
            area = rls.insert(
                ServiceArea(id=uuid.uuid4(),
                            pincode=pincode,
                            service_id=service_id,
                            is_available=is_available))
        else:
            area = rls.update(ServiceArea, area.id,
                              {"is_available": is_available})
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise
    return area


# =========================================================
# NURSE COVERAGE
# =========================================================
def list_coverage(rls: RowSecuritySession,
                  nurse_id: Optional[uuid.UUID] = None
                  ) -> List[NurseServiceArea]:
    nurse_id = nurse_id or rls.uid
    return rls.all(NurseServiceArea,
                   NurseServiceArea.nurse_id == nurse_id,
                   order_by=NurseServiceArea.pincode)


def add_coverage(rls: RowSecuritySession, pincode: str) -> NurseServiceArea:
    claim_write_lock(rls.session)
    try:
        nurse = _require_nurse(rls)
        row = rls.first(NurseServiceArea, NurseServiceArea.nurse_id == nurse.id,
                        NurseServiceArea.pincode == pincode)
        if row is None:
            row = rls.insert(
                NurseServiceArea(id=uuid.uuid4(),
                                 nurse_id=nurse.id,
                                 pincode=pincode,
                                 is_active=True))
        elif not row.is_active:
            row = rls.update(NurseServiceArea, row.id, {"is_active": True})
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise
    return row


def deactivate_coverage(rls: RowSecuritySession,
                        coverage_id: uuid.UUID) -> NurseServiceArea:
    claim_write_lock(rls.session)
    try:
        row = rls.update(NurseServiceArea, coverage_id, {"is_active": False})
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise
    return row


# =========================================================
# SLOTS
# =========================================================
def publish_slot(rls: RowSecuritySession,
                 on_date: date_t,
                 start: time,
                 end: Optional[time] = None) -> NurseSlot:
    """
    The overlap check and the insert run under the nurse's row lock, so two
    publishes for one nurse cannot both pass the check.
    """
    start, end = slot_window(start, end)
    slot_id = uuid.uuid4()

    claim_write_lock(rls.session)
    try:
        nurse = _require_nurse(rls, lock=True)
        nurse_id = nurse.id
        clash = rls.first(
            NurseSlot,
            NurseSlot.nurse_id == nurse_id,
            NurseSlot.date == on_date,
            NurseSlot.status.in_(_LIVE_SLOT),
            NurseSlot.start_time < end,
            NurseSlot.end_time > start,
        )
        if clash is not None:
            raise Conflict("Slot overlaps an existing slot")

        slot = rls.insert(
            NurseSlot(id=slot_id,
                      nurse_id=nurse_id,
                      date=on_date,
                      start_time=start,
                      end_time=end,
                      status=SlotStatus.AVAILABLE.value))
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise
    logger.info("slot %s published by %s for %s %s", slot_id, nurse_id,
                on_date, start)
    return slot


def cancel_slot(rls: RowSecuritySession, slot_id: uuid.UUID) -> NurseSlot:
    """Withdraw an unbooked slot. Booked slots go through the booking."""
    claim_write_lock(rls.session)
    try:
        slot = rls.get_or_404(NurseSlot, slot_id, "Slot")
        changed = rls.update_where(NurseSlot,
                                   {"status": SlotStatus.CANCELLED.value},
                                   NurseSlot.id == slot_id,
                                   NurseSlot.status == SlotStatus.AVAILABLE.value)
        if changed != 1:
            if slot.nurse_id != rls.uid:
                raise Forbidden("Only the slot's nurse can cancel it")
            raise SlotUnavailable("Only available slots can be cancelled")
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise
    rls.session.refresh(slot)
    return slot


def my_slots(rls: RowSecuritySession,
             on_date: Optional[date_t] = None) -> List[NurseSlot]:
    criteria = [NurseSlot.nurse_id == rls.uid]
    if on_date:
        criteria.append(NurseSlot.date == on_date)
    return rls.all(NurseSlot,
                   *criteria,
                   order_by=(NurseSlot.date, NurseSlot.start_time))


def available_slots(rls: RowSecuritySession,
                    on_date: date_t,
                    pincode: Optional[str] = None,
                    nurse_id: Optional[uuid.UUID] = None) -> List[NurseSlot]:
    criteria = [
        NurseSlot.date == on_date,
        NurseSlot.status == SlotStatus.AVAILABLE.value,
    ]
    if nurse_id:
        criteria.append(NurseSlot.nurse_id == nurse_id)
    if pincode:
        criteria.append(
            NurseSlot.nurse_id.in_(
                select(NurseServiceArea.nurse_id).where(
                    rls.visible(NurseServiceArea),
                    NurseServiceArea.pincode == pincode,
                    NurseServiceArea.is_active.is_(True),
                )))
    return rls.all(NurseSlot,
                   *criteria,
                   order_by=(NurseSlot.start_time, NurseSlot.nurse_id))


def nurse_covers(rls: RowSecuritySession, nurse_id: uuid.UUID,
                 pincode: str) -> bool:
    row = rls.first(NurseServiceArea, NurseServiceArea.nurse_id == nurse_id,
                    NurseServiceArea.pincode == pincode,
                    NurseServiceArea.is_active.is_(True))
    return row is not None


