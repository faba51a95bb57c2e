# homecare/models/slot.py
import enum
import uuid
from datetime import datetime, timedelta

from sqlalchemy import (
    Column,
    String,
    Date,
    Time,
    DateTime,
    Uuid,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from homecare.db.base import Base

SLOT_LENGTH = timedelta(hours=1)


class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NurseSlot(Base):
    __tablename__ = "nurse_slots"
    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'booked', 'completed', 'cancelled')",
            name="status"),
        CheckConstraint("end_time > start_time", name="valid_slot_time"),
        CheckConstraint(
            "EXTRACT(EPOCH FROM end_time::time - start_time::time) = 3600",
            name="one_hour_slot").ddl_if(dialect="postgresql"),
        CheckConstraint(
            "CAST(strftime('%s', end_time) AS INTEGER)"
            " - CAST(strftime('%s', start_time) AS INTEGER) = 3600",
            name="one_hour_slot").ddl_if(dialect="sqlite"),
        # target of bookings (slot_id, nurse_id)
        UniqueConstraint("id", "nurse_id"),
        Index("ix_nurse_slots_nurse_date", "nurse_id", "date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    nurse_id = Column(Uuid,
                      ForeignKey("nurse_profiles.id", ondelete="CASCADE"))
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(16),
                    nullable=False,
                    default=SlotStatus.AVAILABLE.value,
                    server_default=SlotStatus.AVAILABLE.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)

    nurse = relationship("NurseProfile", back_populates="slots")
