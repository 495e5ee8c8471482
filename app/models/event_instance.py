"""
Event instance model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from app.core.db import Base

def new_id() -> str:
    # Hex ids contain no "-", which keeps admission codes unambiguous
    return uuid.uuid4().hex

class EventInstance(Base):
    __tablename__ = "event_instances"

    id = Column(String(32), primary_key=True, default=new_id)
    event_id = Column(String(64), nullable=False, default="")
    event_name = Column(String(255), nullable=False)
    event_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    venue = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default="scheduled")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    assignments = relationship(
        "Assignment",
        back_populates="event_instance",
        cascade="all, delete-orphan",
        order_by="Assignment.assigned_at",
    )
