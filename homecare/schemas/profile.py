# homecare/schemas/profile.py
"""
A profile is a tagged union on ``role``: a patient account carries the
patient extension, a nurse account the nurse extension, never both.
"""
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

Gender = Literal["male", "female", "other"]


def _not_null(value):
    # for updates: a field may be left out, but not set to null
    if value is None:
        raise ValueError("may be omitted but not set to null")
    return value


# ---------- Extensions ----------
class PatientDetails(BaseModel):
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    blood_group: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_conditions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    current_medications: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class NurseDetails(BaseModel):
    qualification: str
    years_of_experience: int = Field(0, ge=0)
    specializations: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class PatientDetailsUpdate(BaseModel):
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    blood_group: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_conditions: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    current_medications: Optional[List[str]] = None

    @field_validator("medical_conditions", "allergies", "current_medications")
    @classmethod
    def reject_null(cls, value):
        return _not_null(value)


class NurseDetailsUpdate(BaseModel):
    qualification: Optional[str] = None
    years_of_experience: Optional[int] = Field(None, ge=0)
    specializations: Optional[List[str]] = None
    languages_spoken: Optional[List[str]] = None

    @field_validator("qualification", "years_of_experience", "specializations",
                     "languages_spoken")
    @classmethod
    def reject_null(cls, value):
        return _not_null(value)


# ---------- Create ----------
class _ProfileFields(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None


class PatientProfileCreate(_ProfileFields):
    role: Literal["patient"] = "patient"
    patient: PatientDetails = Field(default_factory=PatientDetails)


class NurseProfileCreate(_ProfileFields):
    role: Literal["nurse"] = "nurse"
    nurse: NurseDetails


ProfileCreate = Annotated[Union[PatientProfileCreate, NurseProfileCreate],
                          Field(discriminator="role")]


# ---------- Read ----------
class PatientAccount(_ProfileFields):
    id: UUID
    role: Literal["patient"] = "patient"
    patient: PatientDetails
    created_at: Optional[datetime] = None


class NurseAccount(_ProfileFields):
    id: UUID
    role: Literal["nurse"] = "nurse"
    nurse: NurseDetails
    created_at: Optional[datetime] = None


Account = Annotated[Union[PatientAccount, NurseAccount],
                    Field(discriminator="role")]


class NurseCard(BaseModel):
    """Directory entry; what any signed-in user may see about a nurse."""
    id: UUID
    name: str
    qualification: str
    years_of_experience: int
    specializations: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)


# ---------- Update ----------
class AccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    patient: Optional[PatientDetailsUpdate] = None
    nurse: Optional[NurseDetailsUpdate] = None

    @field_validator("name")
    @classmethod
    def reject_null(cls, value):
        return _not_null(value)
