"""
Guest-facing RSVP routes (the link an assignee shares with their guests)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_ledger
from app.core.db import get_db
from app.schemas.rsvp import RSVPCreate
from app.services.checkin_service import CheckInLedger
from app.utils.responses import success_response
from app.utils.security import enforce_rate_limit

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

@router.get("/{event_instance_id}/{assignee_id}/{rsvp_token}")
async def open_rsvp_link(
    event_instance_id: str,
    assignee_id: str,
    rsvp_token: str,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    """Check an RSVP link and describe the event it is for"""
    info = ledger.describe_rsvp_link(db, rsvp_token, event_instance_id, assignee_id)
    return success_response(message=f"RSVP for {info.event_name}", data=info)

@router.post("/{event_instance_id}/{assignee_id}/{rsvp_token}")
async def submit_rsvp(
    event_instance_id: str,
    assignee_id: str,
    rsvp_token: str,
    submission: RSVPCreate,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    """Submit an RSVP; the response carries the admission code and QR image"""
    rsvp_id = await ledger.submit_rsvp(
        db,
        rsvp_token,
        submission,
        event_instance_id=event_instance_id,
        assignee_id=assignee_id,
    )
    rsvp = ledger.get_rsvp(db, rsvp_id)
    return success_response(
        message="RSVP confirmed! Show your QR code at the door.",
        data={
            "rsvp_id": rsvp.id,
            "guest_name": rsvp.guest_name,
            "party_size": rsvp.party_size,
            "admission_code": rsvp.admission_code,
            "admission_image": rsvp.admission_image,
            "check_in_url": ledger.token_service.build_check_in_url(rsvp.admission_code),
        },
        status_code=201,
    )
