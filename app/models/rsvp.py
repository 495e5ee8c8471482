"""
RSVP record model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text

from app.core.db import Base
from app.models.event_instance import new_id

class RSVPRecord(Base):
    __tablename__ = "guest_rsvps"

    id = Column(String(32), primary_key=True, default=new_id)
    event_instance_id = Column(String(32), nullable=False, index=True)
    guest_list_entry_id = Column(String(32), nullable=False)

    assignee_type = Column(String(20), nullable=False)
    assignee_id = Column(String(255), nullable=False)
    assignee_name = Column(String(255), default="")
    assignee_email = Column(String(255), default="")

    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    instagram = Column(String(100), nullable=True)
    plus_one_name = Column(String(255), nullable=True)
    party_size = Column(Integer, nullable=False, default=1)

    # Empty until the second phase of submission
    admission_code = Column(String(80), default="", index=True)
    admission_image = Column(Text, default="")

    checked_in = Column(Boolean, default=False)
    checked_in_at = Column(DateTime, nullable=True)
    checked_in_by = Column(String(255), nullable=True)

    rsvp_token = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
