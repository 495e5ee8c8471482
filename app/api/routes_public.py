"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import get_ledger
from app.core.db import get_db
from app.core.errors import NotFoundError
from app.services.checkin_service import CheckInLedger
from app.utils.security import enforce_rate_limit

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/rsvps/{rsvp_id}/qr.png", dependencies=[Depends(enforce_rate_limit)])
async def get_admission_qr(
    rsvp_id: str,
    db: Session = Depends(get_db),
    ledger: CheckInLedger = Depends(get_ledger),
):
    """Admission QR code for an RSVP, rendered from its stored admission code"""
    rsvp = ledger.get_rsvp(db, rsvp_id)
    if not rsvp.admission_code:
        raise NotFoundError("Admission code", "Admission code has not been issued yet")
    if rsvp.admission_image:
        qr_bytes = ledger.token_service.from_data_url(rsvp.admission_image)
    else:
        qr_bytes = ledger.token_service.encode_admission_image(rsvp.admission_code)

    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=admission_{rsvp_id}.png"}
    )
