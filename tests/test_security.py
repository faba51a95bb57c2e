import uuid
from datetime import timedelta

import pytest

from homecare.core.errors import AuthError
from homecare.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from homecare.db.seed import UNUSABLE_PASSWORD


def test_token_subject_is_identity():
    ident = uuid.uuid4()
    token = create_access_token(ident, "a@example.com")
    assert decode_access_token(token) == ident


def test_expired_token_is_rejected():
    token = create_access_token(uuid.uuid4(), "a@example.com",
                                expires_delta=timedelta(seconds=-5))
    with pytest.raises(AuthError):
        decode_access_token(token)


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("anything", UNUSABLE_PASSWORD)
