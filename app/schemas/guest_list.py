"""
Guest list Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from app.models.assignment import AssigneeType

class GuestListEntryResponse(BaseModel):
    id: str
    event_instance_id: str
    event_name: str = ""
    event_date: str = ""
    venue: str = ""
    assignee_type: AssigneeType
    assignee_id: str
    assignee_name: str = ""
    assignee_email: str = ""
    assignee_role: str = ""
    guest_list_link: str = ""
    rsvp_token: str = ""
    max_guests: Optional[int] = None
    description: str = ""
    notes: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class GuestListLinkInfo(BaseModel):
    """What a guest sees when opening an assignee's RSVP link"""
    event_instance_id: str
    event_name: str
    event_date: str
    venue: str
    assignee_name: str
    max_guests: Optional[int] = None
