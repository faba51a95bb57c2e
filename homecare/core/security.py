# homecare/core/security.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from homecare.core.config import settings
from homecare.core.errors import AuthError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unusable marker ("!") or a hash format we don't know
        return False


def create_access_token(identity_id: uuid.UUID,
                        email: str,
                        expires_delta: Optional[timedelta] = None) -> str:
    """
    The subject is the identity UUID; policies compare it against row
    owner columns, so nothing else in the token carries authority.
    """
    now = datetime.utcnow()
    payload = {
        "sub": str(identity_id),
        "email": email,
        "role": "authenticated",
        "iat": now,
        "exp": now + (expires_delta or timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(raw_token: str) -> uuid.UUID:
    try:
        payload = jwt.decode(raw_token,
                             settings.JWT_SECRET,
                             algorithms=[settings.JWT_ALG])
    except JWTError:
        raise AuthError("Invalid token")

    sub = payload.get("sub")
    if not sub:
        raise AuthError("Invalid token payload")
    try:
        return uuid.UUID(sub)
    except ValueError:
        raise AuthError("Invalid token subject")
