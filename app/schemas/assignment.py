"""
Assignment Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr

from app.models.assignment import AssigneeType, AssignmentStatus

class AssignmentCreate(BaseModel):
    """Details of a performer or crew member being assigned"""
    assignee_id: Optional[str] = None  # falls back to email
    assignee_name: str
    legal_name: str = ""
    email: EmailStr
    phone: str = ""
    role: str = ""
    set_start_time: str = ""
    set_end_time: str = ""
    payment_amount: float = 0.0
    is_volunteer: bool = False
    notes: str = ""

class AssignmentCreateRequest(AssignmentCreate):
    assignee_type: AssigneeType

class AssignmentUpdate(BaseModel):
    """Partial update of an assignment's details"""
    assignee_name: Optional[str] = None
    legal_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    set_start_time: Optional[str] = None
    set_end_time: Optional[str] = None
    payment_amount: Optional[float] = None
    is_volunteer: Optional[bool] = None
    notes: Optional[str] = None

class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus

class GuestListLinkUpdate(BaseModel):
    """Manual backfill of a guest list link"""
    guest_list_link: str

class AssignmentResponse(BaseModel):
    id: str
    event_instance_id: str
    assignee_type: AssigneeType
    assignee_id: str
    assignee_name: str
    legal_name: str = ""
    email: str
    phone: str = ""
    role: str = ""
    set_start_time: str = ""
    set_end_time: str = ""
    payment_amount: float = 0.0
    is_volunteer: bool = False
    notes: str = ""
    status: AssignmentStatus = AssignmentStatus.PENDING
    guest_list_link: str = ""
    rsvp_link: str = ""
    assigned_at: Optional[datetime] = None

    class Config:
        from_attributes = True
