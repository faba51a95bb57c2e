# homecare/api/deps.py
from __future__ import annotations

import hmac
from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from homecare.core.config import settings
from homecare.core.errors import AuthError, Forbidden
from homecare.core.security import decode_access_token
from homecare.db.rls import Principal, RowSecuritySession
from homecare.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# AUTH HELPERS
# =========================================================
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def get_principal(authorization: Optional[str] = Header(None)) -> Principal:
    """Anonymous without a token; a bad token is an error, not anonymous."""
    if not authorization:
        return Principal.anonymous()
    raw = _extract_bearer(authorization)
    if not raw:
        raise AuthError("Malformed Authorization header")
    return Principal.authenticated(decode_access_token(raw))


def require_principal(principal: Principal = Depends(get_principal)
                      ) -> Principal:
    if principal.identity is None:
        raise AuthError("Missing token")
    return principal


# =========================================================
# ROW-SECURITY SESSIONS (per request)
# =========================================================
def get_rls(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> RowSecuritySession:
    return RowSecuritySession(db, principal)


def get_user_rls(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
) -> RowSecuritySession:
    return RowSecuritySession(db, principal)


def get_service_rls(
    x_service_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> RowSecuritySession:
    """Administrative path: bypasses policies, so it needs the service key."""
    if not x_service_key or not hmac.compare_digest(
            x_service_key, settings.SERVICE_ROLE_KEY):
        raise Forbidden("Service key required")
    return RowSecuritySession(db, Principal.service())
