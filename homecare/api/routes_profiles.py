# homecare/api/routes_profiles.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from homecare.api.deps import get_user_rls
from homecare.api.response import ok
from homecare.db.rls import RowSecuritySession
from homecare.schemas.profile import AccountUpdate, ProfileCreate
from homecare.services import accounts

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("")
def create_profile(
        payload: ProfileCreate,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    # for identities created without a profile (e.g. an external provider)
    return ok(accounts.register_profile(rls, payload), status_code=201)


@router.get("/me")
def get_my_profile(rls: RowSecuritySession = Depends(get_user_rls)):
    return ok(accounts.load_account(rls))


@router.put("/me")
def update_my_profile(
        payload: AccountUpdate,
        rls: RowSecuritySession = Depends(get_user_rls),
):
    return ok(accounts.update_account(rls, payload))


@router.get("/nurses")
def list_nurses(
        pincode: Optional[str] = Query(None),
        rls: RowSecuritySession = Depends(get_user_rls),
):
    return ok(accounts.list_nurses(rls, pincode=pincode))
