"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .assignment import *
from .guest_list import *
from .rsvp import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventInstanceCreate",
    "EventInstanceResponse",
    "EventInstanceDetail",
    "AssignmentCreate",
    "AssignmentCreateRequest",
    "AssignmentUpdate",
    "AssignmentStatusUpdate",
    "GuestListLinkUpdate",
    "AssignmentResponse",
    "GuestListEntryResponse",
    "GuestListLinkInfo",
    "RSVPCreate",
    "RSVPResponse",
    "CheckInRequest",
    "CheckOutRequest",
    "CheckInRecordResponse",
    "CheckInResult",
    "AssigneeStats",
    "RSVPStats",
    "AssigneeCheckIns",
    "CheckInSummary",
]
