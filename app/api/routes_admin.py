"""
Admin API routes - requires authentication

Used by the booking tool (staffing) and by door staff (check-in).
"""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_ledger, get_orchestrator, get_registry
from app.core.db import get_db
from app.models.assignment import AssigneeType
from app.schemas.assignment import (
    AssignmentCreate,
    AssignmentCreateRequest,
    AssignmentStatusUpdate,
    AssignmentUpdate,
    GuestListLinkUpdate,
)
from app.schemas.event import EventInstanceCreate, EventInstanceDetail
from app.schemas.rsvp import CheckInRequest, CheckOutRequest
from app.services.assignment_service import AssignmentOrchestrator
from app.services.checkin_service import CheckInLedger
from app.services.guest_list_registry import GuestListRegistry
from app.utils.responses import success_response
from app.utils.security import verify_admin_token

router = APIRouter(dependencies=[Depends(verify_admin_token)])

# -------- Event instances --------

@router.post("/event-instances")
async def create_event_instance(
    data: EventInstanceCreate,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Register an event instance"""
    instance = orchestrator.register_event_instance(db, data)
    return success_response(message="Event instance created", data=instance, status_code=201)

@router.get("/event-instances/{event_instance_id}")
async def get_event_instance(
    event_instance_id: str,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
    registry: GuestListRegistry = Depends(get_registry),
    ledger: CheckInLedger = Depends(get_ledger),
):
    """Event instance with staffing and RSVP counts"""
    instance = orchestrator.get_event_instance(db, event_instance_id)
    stats = ledger.stats(db, event_instance_id)
    detail = EventInstanceDetail(
        **instance.model_dump(),
        total_assignments=len(orchestrator.list_assignments(db, event_instance_id)),
        total_guest_lists=len(registry.list_by_event_instance(db, event_instance_id)),
        total_rsvps=stats.total_rsvps,
        checked_in_count=stats.checked_in,
    )
    return success_response(message="Event instance details retrieved", data=detail)

# -------- Assignments --------

@router.post("/event-instances/{event_instance_id}/assignments")
async def add_assignment(
    event_instance_id: str,
    data: AssignmentCreateRequest,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Assign a performer or crew member; the guest list link may arrive later"""
    details = AssignmentCreate(**data.model_dump(exclude={"assignee_type"}))
    assignment_id = await orchestrator.add_assignment(db, event_instance_id, data.assignee_type, details)
    assignment = orchestrator.get_assignment(db, event_instance_id, assignment_id)
    return success_response(message="Assignment added", data=assignment, status_code=201)

@router.get("/event-instances/{event_instance_id}/assignments")
async def list_assignments(
    event_instance_id: str,
    assignee_type: Optional[AssigneeType] = None,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    orchestrator.get_event_instance(db, event_instance_id)
    assignments = orchestrator.list_assignments(db, event_instance_id, assignee_type)
    return success_response(message=f"{len(assignments)} assignments", data=assignments)

@router.patch("/event-instances/{event_instance_id}/assignments/{assignment_id}")
async def update_assignment(
    event_instance_id: str,
    assignment_id: str,
    changes: AssignmentUpdate,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    assignment = orchestrator.update_assignment(db, event_instance_id, assignment_id, changes)
    return success_response(message="Assignment updated", data=assignment)

@router.put("/event-instances/{event_instance_id}/assignments/{assignment_id}/status")
async def update_assignment_status(
    event_instance_id: str,
    assignment_id: str,
    update: AssignmentStatusUpdate,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    assignment = orchestrator.update_assignment_status(db, event_instance_id, assignment_id, update.status)
    return success_response(message=f"Assignment marked {update.status.value}", data=assignment)

@router.delete("/event-instances/{event_instance_id}/assignments/{assignment_id}")
async def remove_assignment(
    event_instance_id: str,
    assignment_id: str,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Remove an assignment; its guest list and RSVP history are kept"""
    orchestrator.remove_assignment(db, event_instance_id, assignment_id)
    return success_response(message="Assignment removed")

@router.put("/event-instances/{event_instance_id}/assignments/{assignment_id}/guest-list-link")
async def backfill_guest_list_link(
    event_instance_id: str,
    assignment_id: str,
    update: GuestListLinkUpdate,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Manually set a guest list link the notification webhook did not return"""
    assignment = orchestrator.backfill_guest_list_link(db, event_instance_id, assignment_id, update.guest_list_link)
    return success_response(message="Guest list link saved", data=assignment)

@router.post("/event-instances/{event_instance_id}/assignments/{assignment_id}/rsvp-link")
async def reissue_rsvp_link(
    event_instance_id: str,
    assignment_id: str,
    db: Session = Depends(get_db),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Issue a new RSVP link; the previous link stops working"""
    rsvp_link = orchestrator.reissue_rsvp_link(db, event_instance_id, assignment_id)
    return success_response(message="RSVP link reissued", data={"rsvp_link": rsvp_link})

# -------- Guest lists --------

@router.get("/event-instances/{event_instance_id}/guest-lists")
async def list_guest_lists(
    event_instance_id: str,
    db: Session = Depends(get_db),
    registry: GuestListRegistry = Depends(get_registry),
):
    entries = registry.list_by_event_instance(db, event_instance_id)
    return success_response(message=f"{len(entries)} guest lists", data=entries)

@router.post("/event-instances/{event_instance_id}/guest-lists/collapse-duplicates")
async def collapse_duplicate_guest_lists(
    event_instance_id: str,
    db: Session = Depends(get_db),
    registry: GuestListRegistry = Depends(get_registry),
):
    deactivated = registry.collapse_duplicates(db, event_instance_id)
    return success_response(message=f"{deactivated} duplicate guest lists deactivated", data={"deactivated": deactivated})

# -------- RSVPs and check-in --------

@router.get("/event-instances/{event_instance_id}/rsvps")
async def list_rsvps(
    event_instance_id: str,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    rsvps = ledger.list_rsvps(db, event_instance_id)
    return success_response(message=f"{len(rsvps)} RSVPs", data=rsvps)

@router.get("/event-instances/{event_instance_id}/stats")
async def rsvp_stats(
    event_instance_id: str,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    return success_response(message="RSVP statistics", data=ledger.stats(db, event_instance_id))

@router.get("/event-instances/{event_instance_id}/check-ins")
async def list_check_ins(
    event_instance_id: str,
    guest_list_entry_id: Optional[str] = None,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    records = ledger.list_check_ins(db, event_instance_id=event_instance_id, guest_list_entry_id=guest_list_entry_id)
    return success_response(message=f"{len(records)} check-ins", data=records)

@router.get("/event-instances/{event_instance_id}/check-in-summary")
async def check_in_summary(
    event_instance_id: str,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    return success_response(message="Check-in summary", data=ledger.check_in_summary(db, event_instance_id))

@router.post("/checkin")
async def check_in(
    request: CheckInRequest,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    """Scan an admission code at the door"""
    result = await ledger.check_in(db, request.admission_code, request.checked_in_by, request.party_size_override)
    message = "Welcome back! Re-entry recorded" if result.re_entry else "Successfully checked in!"
    return success_response(message=message, data=result)

@router.post("/rsvps/{rsvp_id}/checkout")
async def check_out(
    rsvp_id: str,
    request: CheckOutRequest,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    """Correct a mis-scan"""
    rsvp = await ledger.check_out(db, rsvp_id, request.checked_out_by)
    return success_response(message="Check-in reverted", data=rsvp)
