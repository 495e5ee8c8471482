"""
Assignment orchestration: staffing an event instance and provisioning the
assignee's guest list.

Adding an assignment always persists the assignment first. Guest list
provisioning and the staffing notification are best-effort steps that run
afterwards; their failures are logged and never undo or block the
assignment. The guest list link returned by the notification webhook is
reconciled onto both the assignment and the guest list entry, and the same
reconciliation is used for manual backfills.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, UpstreamUnavailable, ValidationError
from app.models.assignment import AssigneeType, AssignmentStatus
from app.models.event_instance import new_id
from app.schemas.assignment import AssignmentCreate, AssignmentResponse, AssignmentUpdate
from app.schemas.event import EventInstanceCreate, EventInstanceResponse
from app.services.guest_list_registry import GuestListRegistry
from app.services.notification_client import AssignmentNotification, NotificationClient
from app.services.repositories import AssignmentRepo, EventInstanceRepo, use_firestore
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)

DEFAULT_CREW_START_TIME = "18:00"


def _format_amount(amount: float) -> str:
    amount = amount or 0
    return str(int(amount)) if float(amount).is_integer() else f"{amount:.2f}"


class AssignmentOrchestrator:
    """Adds, updates and removes assignments on an event instance"""

    def __init__(
        self,
        token_service: TokenService,
        registry: GuestListRegistry,
        notifier: NotificationClient,
    ):
        self.token_service = token_service
        self.registry = registry
        self.notifier = notifier

    # -------- Event instances --------

    def register_event_instance(self, db: Optional[Session], data: EventInstanceCreate) -> EventInstanceResponse:
        values = data.model_dump()
        if use_firestore():
            instance = EventInstanceRepo.create_fs(values)
        else:
            instance = EventInstanceRepo.create_sql(db, values)
        response = EventInstanceResponse.model_validate(instance)
        logger.info(f"Registered event instance {response.id} ({response.event_name})")
        return response

    def get_event_instance(self, db: Optional[Session], event_instance_id: str) -> EventInstanceResponse:
        if use_firestore():
            instance = EventInstanceRepo.get_fs(event_instance_id)
        else:
            instance = EventInstanceRepo.get_sql(db, event_instance_id)
        if not instance:
            raise NotFoundError("Event instance")
        return EventInstanceResponse.model_validate(instance)

    # -------- Assignments --------

    def list_assignments(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignee_type: Optional[AssigneeType] = None,
    ) -> List[AssignmentResponse]:
        if use_firestore():
            rows = AssignmentRepo.list_fs(event_instance_id)
        else:
            rows = AssignmentRepo.list_sql(db, event_instance_id)
        assignments = [AssignmentResponse.model_validate(r) for r in rows]
        if assignee_type is not None:
            assignments = [a for a in assignments if a.assignee_type == assignee_type]
        return assignments

    def get_assignment(self, db: Optional[Session], event_instance_id: str, assignment_id: str) -> AssignmentResponse:
        for assignment in self.list_assignments(db, event_instance_id):
            if assignment.id == assignment_id:
                return assignment
        raise NotFoundError("Assignment")

    async def add_assignment(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignee_type: AssigneeType,
        details: AssignmentCreate,
    ) -> str:
        """Persist an assignment, then provision and enrich its guest list.

        Returns the assignment id once the assignment itself is stored; the
        guest list link may still be empty at that point.
        """
        assignee_type = AssigneeType(assignee_type)
        if not details.assignee_name.strip():
            raise ValidationError("Assignee name is required")

        instance = self.get_event_instance(db, event_instance_id)
        assignee_id = details.assignee_id or str(details.email)

        # A failure here aborts before anything is written
        rsvp_token = self.token_service.issue_rsvp_token()
        rsvp_link = self.token_service.build_rsvp_link(event_instance_id, assignee_id, rsvp_token)

        data = details.model_dump()
        data.update(
            id=new_id(),
            event_instance_id=event_instance_id,
            assignee_type=assignee_type.value,
            assignee_id=assignee_id,
            email=str(details.email),
            status=AssignmentStatus.PENDING.value,
            guest_list_link="",
            rsvp_link=rsvp_link,
        )
        if use_firestore():
            data["assigned_at"] = datetime.utcnow()
            assignment_id = AssignmentRepo.add_fs(event_instance_id, data)["id"]
        else:
            assignment_id = AssignmentRepo.add_sql(db, data).id
        logger.info(f"Added {assignee_type.value} {details.assignee_name} to event instance {event_instance_id}")

        self._provision_guest_list(db, instance, assignee_type, assignee_id, details, rsvp_token)

        notification = self._build_notification(db, instance, assignee_type, details)
        guest_list_link = await self._notify_best_effort(notification)
        if guest_list_link:
            try:
                self.reconcile_guest_list_link(db, event_instance_id, assignee_type, assignee_id, guest_list_link)
            except Exception:
                logger.exception(f"Could not store guest list link for {assignee_id}; it can be backfilled later")
                if db is not None:
                    db.rollback()

        return assignment_id

    def _provision_guest_list(
        self,
        db: Optional[Session],
        instance: EventInstanceResponse,
        assignee_type: AssigneeType,
        assignee_id: str,
        details: AssignmentCreate,
        rsvp_token: str,
    ) -> Optional[str]:
        """Create or refresh the assignee's guest list entry. Never raises."""
        try:
            return self.registry.upsert_by_assignee(
                db,
                instance.id,
                assignee_id,
                assignee_type,
                {
                    "event_name": instance.event_name,
                    "event_date": instance.event_date,
                    "venue": instance.venue,
                    "assignee_name": details.assignee_name,
                    "assignee_email": str(details.email),
                    "assignee_role": details.role,
                    "guest_list_link": "",
                    "rsvp_token": rsvp_token,
                    "is_active": True,
                },
            )
        except Exception:
            logger.exception(f"Guest list provisioning failed for {assignee_type.value} {assignee_id}")
            if db is not None:
                db.rollback()
            return None

    def _build_notification(
        self,
        db: Optional[Session],
        instance: EventInstanceResponse,
        assignee_type: AssigneeType,
        details: AssignmentCreate,
    ) -> AssignmentNotification:
        start_time = details.set_start_time
        role = None
        if assignee_type == AssigneeType.CREW:
            if not start_time:
                performers = self.list_assignments(db, instance.id, AssigneeType.PERFORMER)
                start_time = next(
                    (p.set_start_time for p in performers if p.set_start_time),
                    DEFAULT_CREW_START_TIME,
                )
            role = details.role.upper() if details.role else None

        return AssignmentNotification(
            legal_name=details.legal_name or details.assignee_name,
            display_name=details.assignee_name,
            email=str(details.email),
            phone=details.phone,
            start_time=start_time,
            event_date=instance.event_date,
            event_name=instance.event_name,
            venue=instance.venue,
            payment_amount=_format_amount(details.payment_amount),
            role=role,
        )

    async def _notify_best_effort(self, notification: AssignmentNotification) -> Optional[str]:
        """The one place a notification failure is absorbed"""
        try:
            result = await self.notifier.notify_assignment(notification)
        except UpstreamUnavailable as e:
            logger.warning(f"Staffing notification for {notification.email} failed: {e.message}")
            return None
        except Exception:
            logger.exception(f"Staffing notification for {notification.email} raised unexpectedly")
            return None
        if not result.guest_list_link:
            logger.info(f"Staffing notification for {notification.email} returned no guest list link")
        return result.guest_list_link

    def reconcile_guest_list_link(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignee_type: AssigneeType,
        assignee_id: str,
        guest_list_link: str,
    ) -> int:
        """Set the guest list link on the assignment and its guest list entry.

        Idempotent. Returns the number of assignments updated.
        """
        assignee_type = AssigneeType(assignee_type)
        guest_list_link = guest_list_link.strip()
        if not guest_list_link:
            raise ValidationError("Guest list link is required")

        instance = self.get_event_instance(db, event_instance_id)
        match = {"assignee_type": assignee_type.value, "assignee_id": assignee_id}
        if use_firestore():
            updated = AssignmentRepo.update_matching_fs(event_instance_id, match, {"guest_list_link": guest_list_link})
        else:
            updated = AssignmentRepo.update_matching_sql(
                db, event_instance_id, match, {"guest_list_link": guest_list_link}, commit=False
            )

        assignment = next(
            (a for a in self.list_assignments(db, event_instance_id, assignee_type) if a.assignee_id == assignee_id),
            None,
        )
        fields = {
            "event_name": instance.event_name,
            "event_date": instance.event_date,
            "venue": instance.venue,
            "guest_list_link": guest_list_link,
            "is_active": True,
        }
        if assignment:
            fields.update(
                assignee_name=assignment.assignee_name,
                assignee_email=assignment.email,
                assignee_role=assignment.role,
            )
        self.registry.upsert_by_assignee(db, event_instance_id, assignee_id, assignee_type, fields, commit=False)

        if db is not None and not use_firestore():
            db.commit()
        logger.info(f"Reconciled guest list link for {assignee_type.value} {assignee_id}")
        return updated

    def backfill_guest_list_link(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignment_id: str,
        guest_list_link: str,
    ) -> AssignmentResponse:
        """Manual entry path for a link the webhook never returned"""
        assignment = self.get_assignment(db, event_instance_id, assignment_id)
        self.reconcile_guest_list_link(
            db, event_instance_id, assignment.assignee_type, assignment.assignee_id, guest_list_link
        )
        return self.get_assignment(db, event_instance_id, assignment_id)

    def reissue_rsvp_link(self, db: Optional[Session], event_instance_id: str, assignment_id: str) -> str:
        """Issue a fresh token; links carrying the old token stop validating"""
        assignment = self.get_assignment(db, event_instance_id, assignment_id)
        rsvp_token = self.token_service.issue_rsvp_token()
        rsvp_link = self.token_service.build_rsvp_link(event_instance_id, assignment.assignee_id, rsvp_token)

        self._update(db, event_instance_id, assignment_id, {"rsvp_link": rsvp_link})
        self.registry.upsert_by_assignee(
            db,
            event_instance_id,
            assignment.assignee_id,
            assignment.assignee_type,
            {
                "assignee_name": assignment.assignee_name,
                "assignee_email": assignment.email,
                "rsvp_token": rsvp_token,
                "is_active": True,
            },
        )
        logger.info(f"Reissued RSVP link for assignment {assignment_id}")
        return rsvp_link

    def update_assignment(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignment_id: str,
        changes: AssignmentUpdate,
    ) -> AssignmentResponse:
        values = changes.model_dump(exclude_none=True)
        if not values:
            return self.get_assignment(db, event_instance_id, assignment_id)
        self._update(db, event_instance_id, assignment_id, values)
        return self.get_assignment(db, event_instance_id, assignment_id)

    def update_assignment_status(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignment_id: str,
        status: AssignmentStatus,
    ) -> AssignmentResponse:
        self._update(db, event_instance_id, assignment_id, {"status": AssignmentStatus(status).value})
        return self.get_assignment(db, event_instance_id, assignment_id)

    def remove_assignment(self, db: Optional[Session], event_instance_id: str, assignment_id: str) -> None:
        """Drop the assignment only; its guest list, RSVPs and check-ins are kept"""
        if use_firestore():
            removed = AssignmentRepo.remove_fs(event_instance_id, assignment_id)
        else:
            removed = AssignmentRepo.remove_sql(db, event_instance_id, assignment_id)
        if not removed:
            raise NotFoundError("Assignment")
        logger.info(f"Removed assignment {assignment_id} from event instance {event_instance_id}")

    def _update(self, db: Optional[Session], event_instance_id: str, assignment_id: str, changes: dict) -> None:
        match = {"id": assignment_id}
        if use_firestore():
            updated = AssignmentRepo.update_matching_fs(event_instance_id, match, changes)
        else:
            updated = AssignmentRepo.update_matching_sql(db, event_instance_id, match, changes)
        if not updated:
            raise NotFoundError("Assignment")
