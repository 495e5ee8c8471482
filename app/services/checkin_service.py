"""
RSVP submission and door check-in ledger with real-time broadcasting
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidAdmissionCodeError, InvalidTokenError, NotFoundError, ValidationError
from app.models.assignment import AssigneeType
from app.schemas.guest_list import GuestListEntryResponse, GuestListLinkInfo
from app.schemas.rsvp import (
    AssigneeCheckIns,
    AssigneeStats,
    CheckInRecordResponse,
    CheckInResult,
    CheckInSummary,
    RSVPCreate,
    RSVPResponse,
    RSVPStats,
)
from app.services.guest_list_registry import GuestListRegistry
from app.services.repositories import CheckInRepo, RSVPRepo, use_firestore
from app.services.rsvp_feed import RSVPFeed, SnapshotCallback, Subscription
from app.services.token_service import TokenService
from app.services.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

class CheckInLedger:
    """RSVPs gated by the assignee's token, check-ins gated by the admission code.

    The check-in ledger is append-only. Scanning a code that is already
    checked in is a re-entry: it succeeds and appends another row.
    """

    def __init__(
        self,
        token_service: TokenService,
        registry: GuestListRegistry,
        feed: RSVPFeed,
        websocket_manager: Optional[WebSocketManager] = None,
    ):
        self.token_service = token_service
        self.registry = registry
        self.feed = feed
        self.websocket_manager = websocket_manager

    # -------- RSVP --------

    def resolve_rsvp_link(
        self,
        db: Optional[Session],
        rsvp_token: str,
        event_instance_id: Optional[str] = None,
        assignee_id: Optional[str] = None,
    ) -> GuestListEntryResponse:
        """Return the active guest list an RSVP token belongs to"""
        entry = self.registry.find_active_by_token(db, rsvp_token)
        if not entry:
            raise InvalidTokenError()
        if event_instance_id is not None and entry.event_instance_id != event_instance_id:
            raise InvalidTokenError()
        if assignee_id is not None and entry.assignee_id != assignee_id:
            raise InvalidTokenError()
        return entry

    def describe_rsvp_link(self, db: Optional[Session], rsvp_token: str, event_instance_id: str, assignee_id: str) -> GuestListLinkInfo:
        entry = self.resolve_rsvp_link(db, rsvp_token, event_instance_id, assignee_id)
        return GuestListLinkInfo(
            event_instance_id=entry.event_instance_id,
            event_name=entry.event_name,
            event_date=entry.event_date,
            venue=entry.venue,
            assignee_name=entry.assignee_name,
            max_guests=entry.max_guests,
        )

    async def submit_rsvp(
        self,
        db: Optional[Session],
        rsvp_token: str,
        submission: RSVPCreate,
        event_instance_id: Optional[str] = None,
        assignee_id: Optional[str] = None,
    ) -> str:
        """Create an RSVP for the guest list behind ``rsvp_token``.

        The record is written first; its admission code embeds the record id,
        so the code and QR image are derived and stored in a second write.
        Between the two writes the record has an empty admission code.
        """
        guest_name = (submission.guest_name or "").strip()
        if not guest_name:
            raise ValidationError("Guest name is required")
        if submission.party_size < 1:
            raise ValidationError("Party size must be at least 1")

        entry = self.resolve_rsvp_link(db, rsvp_token, event_instance_id, assignee_id)
        if entry.max_guests is not None and submission.party_size > entry.max_guests:
            raise ValidationError(f"Party size cannot exceed {entry.max_guests} for this guest list")

        data = submission.model_dump()
        data.update(
            guest_name=guest_name,
            event_instance_id=entry.event_instance_id,
            guest_list_entry_id=entry.id,
            assignee_type=entry.assignee_type.value,
            assignee_id=entry.assignee_id,
            assignee_name=entry.assignee_name,
            assignee_email=entry.assignee_email,
            admission_code="",
            admission_image="",
            checked_in=False,
            rsvp_token=rsvp_token,
        )

        if use_firestore():
            rsvp_id = RSVPRepo.create_fs(data)["id"]
        else:
            rsvp = RSVPRepo.create_sql(db, data)
            rsvp_id = rsvp.id

        admission_code = self.token_service.derive_admission_code(entry.event_instance_id, rsvp_id)
        admission_image = self.token_service.to_data_url(
            self.token_service.encode_admission_image(admission_code)
        )
        changes = {"admission_code": admission_code, "admission_image": admission_image}
        if use_firestore():
            RSVPRepo.update_fs(rsvp_id, changes)
        else:
            RSVPRepo.update_sql(db, rsvp, changes)

        logger.info(f"RSVP {rsvp_id} for {guest_name} (party of {submission.party_size}) on {entry.assignee_name}'s list")
        await self._changed(db, entry.event_instance_id, {
            "type": "rsvp",
            "rsvp_id": rsvp_id,
            "guest_name": guest_name,
            "party_size": submission.party_size,
            "assignee_name": entry.assignee_name,
        })
        return rsvp_id

    def get_rsvp(self, db: Optional[Session], rsvp_id: str) -> RSVPResponse:
        if use_firestore():
            rsvp = RSVPRepo.get_fs(rsvp_id)
        else:
            rsvp = RSVPRepo.get_sql(db, rsvp_id)
        if not rsvp:
            raise NotFoundError("RSVP")
        return RSVPResponse.model_validate(rsvp)

    def list_rsvps(self, db: Optional[Session], event_instance_id: str) -> List[RSVPResponse]:
        """All RSVPs for an event instance, newest first"""
        return self.feed.snapshot(db, event_instance_id)

    # -------- Check-in --------

    async def check_in(
        self,
        db: Optional[Session],
        admission_code: str,
        checked_in_by: str,
        party_size_override: Optional[int] = None,
    ) -> CheckInResult:
        """Admit the holder of ``admission_code`` and append a ledger row"""
        admission_code = (admission_code or "").strip()
        if not self.token_service.validate_admission_code_format(admission_code):
            raise InvalidAdmissionCodeError(admission_code)
        if not checked_in_by or not checked_in_by.strip():
            raise ValidationError("checked_in_by is required")

        if use_firestore():
            rsvp_row = RSVPRepo.find_by_admission_code_fs(admission_code)
        else:
            rsvp_row = RSVPRepo.find_by_admission_code_sql(db, admission_code)
        if not rsvp_row:
            raise NotFoundError("RSVP", f"No RSVP matches admission code {admission_code!r}")
        rsvp = RSVPResponse.model_validate(rsvp_row)

        party_size = rsvp.party_size
        if party_size_override is not None:
            if not 1 <= party_size_override <= rsvp.party_size:
                raise ValidationError(
                    f"Party size override must be between 1 and the RSVP'd party size ({rsvp.party_size})"
                )
            party_size = party_size_override

        re_entry = rsvp.checked_in
        now = datetime.utcnow()
        rsvp_changes = {"checked_in": True, "checked_in_at": now, "checked_in_by": checked_in_by}
        ledger_data = {
            "guest_list_entry_id": rsvp.guest_list_entry_id,
            "event_instance_id": rsvp.event_instance_id,
            "rsvp_record_id": rsvp.id,
            "guest_name": rsvp.guest_name,
            "guest_email": rsvp.guest_email,
            "guest_phone": rsvp.guest_phone,
            "party_size": party_size,
            "checked_in_at": now,
            "checked_in_by": checked_in_by,
            "notes": "re-entry" if re_entry else "",
        }

        if use_firestore():
            record = CheckInRepo.record_fs(rsvp.id, rsvp_changes, ledger_data)
        else:
            record = CheckInRepo.record_sql(db, rsvp_row, rsvp_changes, ledger_data)
        result = CheckInResult.model_validate(record)
        result.re_entry = re_entry

        if re_entry:
            logger.warning(f"Re-entry for RSVP {rsvp.id} ({rsvp.guest_name}) scanned by {checked_in_by}")
        else:
            logger.info(f"Checked in {rsvp.guest_name} (party of {party_size}) by {checked_in_by}")

        await self._changed(db, rsvp.event_instance_id, {
            "type": "checkin",
            "guest": {
                "name": rsvp.guest_name,
                "party_size": party_size,
                "assignee_name": rsvp.assignee_name,
            },
            "timestamp": now.isoformat(),
            "was_already_checked_in": re_entry,
        })
        return result

    async def check_out(self, db: Optional[Session], rsvp_id: str, checked_out_by: str) -> RSVPResponse:
        """Undo a mis-scan on the RSVP. The ledger is left as it is."""
        if use_firestore():
            rsvp_row = RSVPRepo.get_fs(rsvp_id)
        else:
            rsvp_row = RSVPRepo.get_sql(db, rsvp_id)
        if not rsvp_row:
            raise NotFoundError("RSVP")

        changes = {"checked_in": False, "checked_in_at": None, "checked_in_by": checked_out_by}
        if use_firestore():
            RSVPRepo.update_fs(rsvp_id, changes)
        else:
            RSVPRepo.update_sql(db, rsvp_row, changes)

        rsvp = self.get_rsvp(db, rsvp_id)
        logger.info(f"Checked out RSVP {rsvp_id} ({rsvp.guest_name}) by {checked_out_by}")
        await self._changed(db, rsvp.event_instance_id, {
            "type": "checkout",
            "rsvp_id": rsvp_id,
            "guest_name": rsvp.guest_name,
            "timestamp": datetime.utcnow().isoformat(),
        })
        return rsvp

    def list_check_ins(
        self,
        db: Optional[Session],
        event_instance_id: Optional[str] = None,
        guest_list_entry_id: Optional[str] = None,
    ) -> List[CheckInRecordResponse]:
        """Ledger rows, most recent first"""
        if guest_list_entry_id:
            if use_firestore():
                rows = CheckInRepo.list_by_guest_list_fs(guest_list_entry_id)
            else:
                rows = CheckInRepo.list_by_guest_list_sql(db, guest_list_entry_id)
        elif event_instance_id:
            if use_firestore():
                rows = CheckInRepo.list_by_event_instance_fs(event_instance_id)
            else:
                rows = CheckInRepo.list_by_event_instance_sql(db, event_instance_id)
        else:
            raise ValidationError("An event instance or guest list is required")
        return [CheckInRecordResponse.model_validate(r) for r in rows]

    # -------- Statistics --------

    @staticmethod
    def calculate_stats(rsvps: List[RSVPResponse]) -> RSVPStats:
        checked_in = 0
        total_guests = 0
        assignee_stats: Dict[str, AssigneeStats] = {}

        for rsvp in rsvps:
            per_assignee = assignee_stats.setdefault(rsvp.assignee_name, AssigneeStats())
            per_assignee.total += 1
            per_assignee.guests += rsvp.party_size
            total_guests += rsvp.party_size
            if rsvp.checked_in:
                checked_in += 1
                per_assignee.checked_in += 1

        return RSVPStats(
            total_rsvps=len(rsvps),
            checked_in=checked_in,
            not_checked_in=len(rsvps) - checked_in,
            total_guests=total_guests,
            assignee_stats=assignee_stats,
        )

    def stats(self, db: Optional[Session], event_instance_id: str) -> RSVPStats:
        """Computed from the current RSVP set on every call"""
        return self.calculate_stats(self.list_rsvps(db, event_instance_id))

    def check_in_summary(self, db: Optional[Session], event_instance_id: str) -> CheckInSummary:
        """Ledger totals per guest list"""
        guest_lists = self.registry.list_by_event_instance(db, event_instance_id)
        check_ins = self.list_check_ins(db, event_instance_id=event_instance_id)

        counts: Dict[str, int] = defaultdict(int)
        guests: Dict[str, int] = defaultdict(int)
        for record in check_ins:
            counts[record.guest_list_entry_id] += 1
            guests[record.guest_list_entry_id] += record.party_size

        return CheckInSummary(
            total_guest_lists=len(guest_lists),
            performer_guest_lists=sum(1 for g in guest_lists if g.assignee_type == AssigneeType.PERFORMER),
            crew_guest_lists=sum(1 for g in guest_lists if g.assignee_type == AssigneeType.CREW),
            total_check_ins=len(check_ins),
            total_guests=sum(r.party_size for r in check_ins),
            check_ins_by_assignee=[
                AssigneeCheckIns(
                    guest_list_entry_id=g.id,
                    assignee_name=g.assignee_name,
                    assignee_type=g.assignee_type,
                    assignee_role=g.assignee_role,
                    guest_list_link=g.guest_list_link,
                    check_in_count=counts[g.id],
                    total_guests=guests[g.id],
                )
                for g in guest_lists
            ],
        )

    # -------- Live updates --------

    def subscribe(self, db: Optional[Session], event_instance_id: str, callback: SnapshotCallback) -> Subscription:
        return self.feed.subscribe(db, event_instance_id, callback)

    async def _changed(self, db: Optional[Session], event_instance_id: str, message: dict) -> None:
        self.feed.publish(db, event_instance_id)
        if self.websocket_manager is not None:
            await self.websocket_manager.broadcast_to_event(event_instance_id, message)
