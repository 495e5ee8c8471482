"""
Database models package
"""

from .event_instance import EventInstance
from .assignment import Assignment, AssigneeType, AssignmentStatus
from .guest_list import GuestListEntry
from .rsvp import RSVPRecord
from .check_in import CheckInRecord

__all__ = [
    "EventInstance",
    "Assignment",
    "AssigneeType",
    "AssignmentStatus",
    "GuestListEntry",
    "RSVPRecord",
    "CheckInRecord",
]
