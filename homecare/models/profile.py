# homecare/models/profile.py
import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Text,
    Date,
    DateTime,
    Integer,
    Uuid,
    ForeignKey,
    ForeignKeyConstraint,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from homecare.db.base import Base, StringList


class ProfileRole(str, enum.Enum):
    PATIENT = "patient"
    NURSE = "nurse"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role IN ('patient', 'nurse')", name="role"),
        # target of the (id, role) foreign keys on the extension tables
        UniqueConstraint("id", "role"),
    )

    id = Column(Uuid,
                ForeignKey("identities.id", ondelete="CASCADE"),
                primary_key=True)
    role = Column(String(16), nullable=False)
    name = Column(Text, nullable=False)
    phone = Column(Text)
    address = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)

    identity = relationship("Identity", back_populates="profile")
    patient = relationship("PatientProfile",
                           back_populates="profile",
                           uselist=False,
                           passive_deletes=True)
    nurse = relationship("NurseProfile",
                         back_populates="profile",
                         uselist=False,
                         passive_deletes=True)


class PatientProfile(Base):
    __tablename__ = "patient_profiles"
    __table_args__ = (
        CheckConstraint("role = 'patient'", name="role"),
        CheckConstraint("gender IN ('male', 'female', 'other')",
                        name="gender"),
        ForeignKeyConstraint(["id", "role"], ["profiles.id", "profiles.role"],
                             ondelete="CASCADE"),
    )

    id = Column(Uuid, primary_key=True)
    role = Column(String(16),
                  nullable=False,
                  default=ProfileRole.PATIENT.value,
                  server_default=ProfileRole.PATIENT.value)
    date_of_birth = Column(Date)
    gender = Column(String(16))
    blood_group = Column(Text)
    emergency_contact_name = Column(Text)
    emergency_contact_phone = Column(Text)
    medical_conditions = Column(StringList, default=list)
    allergies = Column(StringList, default=list)
    current_medications = Column(StringList, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)

    profile = relationship("Profile",
                           back_populates="patient",
                           foreign_keys=[id, role])


class NurseProfile(Base):
    __tablename__ = "nurse_profiles"
    __table_args__ = (
        CheckConstraint("role = 'nurse'", name="role"),
        CheckConstraint("years_of_experience >= 0", name="experience"),
        ForeignKeyConstraint(["id", "role"], ["profiles.id", "profiles.role"],
                             ondelete="CASCADE"),
    )

    id = Column(Uuid, primary_key=True)
    role = Column(String(16),
                  nullable=False,
                  default=ProfileRole.NURSE.value,
                  server_default=ProfileRole.NURSE.value)
    qualification = Column(Text, nullable=False)
    years_of_experience = Column(Integer, nullable=False, default=0)
    specializations = Column(StringList, default=list)
    languages_spoken = Column(StringList, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)

    profile = relationship("Profile",
                           back_populates="nurse",
                           foreign_keys=[id, role])
    service_areas = relationship("NurseServiceArea",
                                 back_populates="nurse",
                                 passive_deletes=True)
    slots = relationship("NurseSlot",
                         back_populates="nurse",
                         passive_deletes=True)
