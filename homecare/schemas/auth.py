# homecare/schemas/auth.py
from uuid import UUID

from pydantic import BaseModel, Field

from homecare.schemas.profile import ProfileCreate


class SignupIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=191)
    password: str = Field(..., min_length=8, max_length=72)
    profile: ProfileCreate


class LoginIn(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    identity_id: UUID
