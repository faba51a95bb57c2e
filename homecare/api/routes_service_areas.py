# homecare/api/routes_service_areas.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from homecare.api.deps import get_rls, get_service_rls
from homecare.api.response import ok, ok_rows
from homecare.db.rls import RowSecuritySession
from homecare.schemas.booking import ServiceAreaIn, ServiceAreaOut
from homecare.services import slots

router = APIRouter(prefix="/service-areas", tags=["service-areas"])


@router.get("")
def list_service_areas(
        pincode: Optional[str] = Query(None),
        rls: RowSecuritySession = Depends(get_rls),
):
    return ok_rows(slots.list_service_areas(rls, pincode=pincode),
                   ServiceAreaOut)


@router.get("/check")
def check_service_area(
        pincode: str = Query(...),
        service_id: str = Query(...),
        rls: RowSecuritySession = Depends(get_rls),
):
    return ok({
        "pincode": pincode,
        "service_id": service_id,
        "available": slots.is_service_available(rls, pincode, service_id),
    })


@router.put("")
def upsert_service_area(
        payload: ServiceAreaIn,
        rls: RowSecuritySession = Depends(get_service_rls),
):
    area = slots.upsert_service_area(rls, payload.pincode, payload.service_id,
                                     payload.is_available)
    return ok(ServiceAreaOut.model_validate(area))
