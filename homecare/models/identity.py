# homecare/models/identity.py
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship

from homecare.db.base import Base


class Identity(Base):
    """
    Login account owned by the identity provider. Policies only ever see
    its id; everything user-facing hangs off `profiles`.
    """
    __tablename__ = "identities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(191), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    profile = relationship("Profile",
                           back_populates="identity",
                           uselist=False,
                           passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Identity id={self.id} email={self.email}>"
