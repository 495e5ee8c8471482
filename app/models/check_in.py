"""
Check-in ledger model. Rows are appended, never updated or deleted.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text

from app.core.db import Base
from app.models.event_instance import new_id

class CheckInRecord(Base):
    __tablename__ = "check_ins"

    id = Column(String(32), primary_key=True, default=new_id)
    guest_list_entry_id = Column(String(32), nullable=False, index=True)
    event_instance_id = Column(String(32), nullable=False, index=True)
    rsvp_record_id = Column(String(32), nullable=False)

    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)

    party_size = Column(Integer, nullable=False)
    checked_in_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    checked_in_by = Column(String(255), nullable=False)
    notes = Column(Text, default="")

    created_at = Column(DateTime, default=datetime.utcnow)
