# homecare/api/routes_auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from homecare.api.deps import get_db, get_user_rls
from homecare.api.response import ok
from homecare.db.rls import RowSecuritySession
from homecare.schemas.auth import LoginIn, SignupIn, TokenOut
from homecare.services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup")
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    token, account = accounts.signup(db, payload)
    return ok(
        {
            "token": TokenOut(access_token=token, identity_id=account.id),
            "account": account,
        },
        status_code=201,
    )


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    token, identity_id = accounts.login(db, payload)
    return ok(TokenOut(access_token=token, identity_id=identity_id))


@router.get("/me")
def me(rls: RowSecuritySession = Depends(get_user_rls)):
    return ok(accounts.load_account(rls))
