"""
RSVP and check-in Pydantic schemas
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel

from app.models.assignment import AssigneeType

class RSVPCreate(BaseModel):
    """Guest RSVP submission"""
    guest_name: str
    party_size: int = 1
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    instagram: Optional[str] = None
    plus_one_name: Optional[str] = None

class RSVPResponse(BaseModel):
    id: str
    event_instance_id: str
    guest_list_entry_id: str
    assignee_type: AssigneeType
    assignee_id: str
    assignee_name: str = ""
    assignee_email: str = ""
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    instagram: Optional[str] = None
    plus_one_name: Optional[str] = None
    party_size: int
    admission_code: str = ""
    admission_image: str = ""
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    rsvp_token: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CheckInRequest(BaseModel):
    """Door scan of an admission code"""
    admission_code: str
    checked_in_by: str
    party_size_override: Optional[int] = None

class CheckOutRequest(BaseModel):
    checked_out_by: str

class CheckInRecordResponse(BaseModel):
    id: str
    guest_list_entry_id: str
    event_instance_id: str
    rsvp_record_id: str
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    party_size: int
    checked_in_at: datetime
    checked_in_by: str
    notes: str = ""

    class Config:
        from_attributes = True

class CheckInResult(CheckInRecordResponse):
    """Ledger row plus whether the scan was a re-entry"""
    re_entry: bool = False

class AssigneeStats(BaseModel):
    total: int = 0
    checked_in: int = 0
    guests: int = 0

class RSVPStats(BaseModel):
    total_rsvps: int
    checked_in: int
    not_checked_in: int
    total_guests: int
    assignee_stats: Dict[str, AssigneeStats]

class AssigneeCheckIns(BaseModel):
    guest_list_entry_id: str
    assignee_name: str
    assignee_type: AssigneeType
    assignee_role: str = ""
    guest_list_link: str = ""
    check_in_count: int
    total_guests: int

class CheckInSummary(BaseModel):
    """Ledger-based totals per guest list"""
    total_guest_lists: int
    performer_guest_lists: int
    crew_guest_lists: int
    total_check_ins: int
    total_guests: int
    check_ins_by_assignee: List[AssigneeCheckIns]
