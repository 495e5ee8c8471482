"""
Assignment model (performer or crew member working an event instance)
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.event_instance import new_id

class AssigneeType(str, Enum):
    PERFORMER = "performer"
    CREW = "crew"

class AssignmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(String(32), primary_key=True, default=new_id)
    event_instance_id = Column(String(32), ForeignKey("event_instances.id"), nullable=False, index=True)
    assignee_type = Column(String(20), nullable=False)
    assignee_id = Column(String(255), nullable=False)
    assignee_name = Column(String(255), nullable=False)
    legal_name = Column(String(255), default="")
    email = Column(String(255), nullable=False)
    phone = Column(String(50), default="")
    role = Column(String(100), default="")
    set_start_time = Column(String(5), default="")  # HH:MM, 24h
    set_end_time = Column(String(5), default="")
    payment_amount = Column(Float, default=0.0)
    is_volunteer = Column(Boolean, default=False)
    notes = Column(Text, default="")
    status = Column(String(20), nullable=False, default=AssignmentStatus.PENDING.value)

    # Filled in after creation, possibly by a later backfill
    guest_list_link = Column(String(1024), default="")
    rsvp_link = Column(String(1024), default="")

    assigned_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    event_instance = relationship("EventInstance", back_populates="assignments")
