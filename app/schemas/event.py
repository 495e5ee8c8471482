"""
Event instance Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

class EventInstanceCreate(BaseModel):
    """Schema for registering an event instance"""
    event_id: str = ""
    event_name: str
    event_date: str  # YYYY-MM-DD
    venue: str = ""
    status: str = "scheduled"

class EventInstanceResponse(BaseModel):
    """Basic event instance response"""
    id: str
    event_id: str = ""
    event_name: str
    event_date: str
    venue: str = ""
    status: str = "scheduled"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class EventInstanceDetail(EventInstanceResponse):
    """Event instance with staffing and RSVP counts"""
    total_assignments: int
    total_guest_lists: int
    total_rsvps: int
    checked_in_count: int
