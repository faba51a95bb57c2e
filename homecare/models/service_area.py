# homecare/models/service_area.py
import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    Text,
    Boolean,
    DateTime,
    Uuid,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from homecare.db.base import Base


class ServiceArea(Base):
    """Whether a service is offered at a pincode. Written by admins only."""
    __tablename__ = "service_areas"
    __table_args__ = (UniqueConstraint("pincode", "service_id"), )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pincode = Column(Text, nullable=False)
    service_id = Column(Text, nullable=False)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)


class NurseServiceArea(Base):
    __tablename__ = "nurse_service_areas"
    __table_args__ = (UniqueConstraint("nurse_id", "pincode"), )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    nurse_id = Column(Uuid,
                      ForeignKey("nurse_profiles.id", ondelete="CASCADE"),
                      index=True)
    pincode = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)

    nurse = relationship("NurseProfile", back_populates="service_areas")
