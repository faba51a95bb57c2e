# homecare/models/booking.py
import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    Uuid,
    ForeignKey,
    ForeignKeyConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from homecare.db.base import Base


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


LIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
_LIVE_SQL = "status IN ('pending', 'confirmed')"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="status"),
        # the slot must belong to the booked nurse
        ForeignKeyConstraint(["slot_id", "nurse_id"],
                             ["nurse_slots.id", "nurse_slots.nurse_id"],
                             ondelete="CASCADE"),
        # one live booking per slot
        Index("uq_bookings_live_slot",
              "slot_id",
              unique=True,
              postgresql_where=text(_LIVE_SQL),
              sqlite_where=text(_LIVE_SQL)),
        Index("ix_bookings_patient", "patient_id"),
        Index("ix_bookings_nurse", "nurse_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid,
                        ForeignKey("patient_profiles.id", ondelete="CASCADE"),
                        nullable=False)
    nurse_id = Column(Uuid,
                      ForeignKey("nurse_profiles.id", ondelete="CASCADE"),
                      nullable=False)
    slot_id = Column(Uuid, nullable=False)
    service_id = Column(Text, nullable=False)
    status = Column(String(16),
                    nullable=False,
                    default=BookingStatus.PENDING.value,
                    server_default=BookingStatus.PENDING.value)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)

    patient = relationship("PatientProfile", viewonly=True)
    nurse = relationship("NurseProfile",
                         foreign_keys=[nurse_id],
                         viewonly=True)
    slot = relationship("NurseSlot",
                        foreign_keys=[slot_id, nurse_id],
                        viewonly=True)
