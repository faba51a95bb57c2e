# homecare/api/routes_slots.py
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from homecare.api.deps import get_user_rls
from homecare.api.response import ok, ok_rows
from homecare.db.rls import RowSecuritySession
from homecare.schemas.booking import CoverageIn, CoverageOut, SlotCreate, SlotOut
from homecare.services import slots

router = APIRouter(tags=["slots"])


# ---------- Coverage ----------
@router.get("/coverage")
def list_coverage(
        nurse_id: Optional[UUID] = Query(None),
        rls: RowSecuritySession = Depends(get_user_rls),
):
    return ok_rows(slots.list_coverage(rls, nurse_id=nurse_id), CoverageOut)


@router.post("/coverage")
def add_coverage(
        payload: CoverageIn,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    row = slots.add_coverage(rls, payload.pincode)
    return ok(CoverageOut.model_validate(row), status_code=201)


@router.delete("/coverage/{coverage_id}")
def deactivate_coverage(
        coverage_id: UUID,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    row = slots.deactivate_coverage(rls, coverage_id)
    return ok(CoverageOut.model_validate(row))


# ---------- Slots ----------
@router.get("/slots")
def search_slots(
        on: date = Query(..., alias="date"),
        pincode: Optional[str] = Query(None),
        nurse_id: Optional[UUID] = Query(None),
        rls: RowSecuritySession = Depends(get_user_rls),
):
    rows = slots.available_slots(rls, on, pincode=pincode, nurse_id=nurse_id)
    return ok_rows(rows, SlotOut)


@router.get("/slots/mine")
def my_slots(
        on: Optional[date] = Query(None, alias="date"),
        rls: RowSecuritySession = Depends(get_user_rls),
):
    return ok_rows(slots.my_slots(rls, on), SlotOut)


@router.post("/slots")
def publish_slot(
        payload: SlotCreate,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    slot = slots.publish_slot(rls, payload.date, payload.start_time,
                              payload.end_time)
    return ok(SlotOut.model_validate(slot), status_code=201)


@router.delete("/slots/{slot_id}")
def cancel_slot(
        slot_id: UUID,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    return ok(SlotOut.model_validate(slots.cancel_slot(rls, slot_id)))
