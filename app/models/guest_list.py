"""
Guest list entry model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text

from app.core.db import Base
from app.models.event_instance import new_id

class GuestListEntry(Base):
    __tablename__ = "guest_lists"

    id = Column(String(32), primary_key=True, default=new_id)
    event_instance_id = Column(String(32), nullable=False, index=True)
    event_name = Column(String(255), default="")
    event_date = Column(String(10), default="")
    venue = Column(String(255), default="")

    assignee_type = Column(String(20), nullable=False)
    assignee_id = Column(String(255), nullable=False)
    assignee_name = Column(String(255), default="")
    assignee_email = Column(String(255), default="")
    assignee_role = Column(String(100), default="")

    guest_list_link = Column(String(1024), default="")
    rsvp_token = Column(String(64), default="", index=True)

    max_guests = Column(Integer, nullable=True)
    description = Column(Text, default="")
    notes = Column(Text, default="")

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
