"""
Guest list registry: one guest list per assignee per event instance
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.assignment import AssigneeType
from app.schemas.guest_list import GuestListEntryResponse
from app.services.repositories import GuestListRepo, use_firestore

logger = logging.getLogger(__name__)

# Never changed by an update, whatever the caller passes
IMMUTABLE_FIELDS = ("id", "event_instance_id", "assignee_id", "assignee_type", "created_at", "updated_at")

# Defaulted to "" (not None) on create
STRING_FIELDS = (
    "event_name",
    "event_date",
    "venue",
    "assignee_name",
    "assignee_email",
    "assignee_role",
    "guest_list_link",
    "rsvp_token",
    "description",
    "notes",
)


def _type_value(assignee_type) -> str:
    return assignee_type.value if isinstance(assignee_type, AssigneeType) else str(assignee_type)


class GuestListRegistry:
    """Lookup-then-upsert store for guest list entries.

    ``upsert_by_assignee`` is the only write path. There is no unique index
    on (event_instance_id, assignee_id, assignee_type); two upserts racing on
    the same key can both take the create branch. ``collapse_duplicates``
    repairs that after the fact. Deployments whose storage supports it should
    run lookup and write inside one conditional transaction instead.
    """

    def lookup(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignee_id: str,
        assignee_type,
    ) -> Optional[GuestListEntryResponse]:
        assignee_type = _type_value(assignee_type)
        if use_firestore():
            entry = GuestListRepo.find_by_assignee_fs(event_instance_id, assignee_id, assignee_type)
        else:
            entry = GuestListRepo.find_by_assignee_sql(db, event_instance_id, assignee_id, assignee_type)
        return GuestListEntryResponse.model_validate(entry) if entry else None

    def upsert_by_assignee(
        self,
        db: Optional[Session],
        event_instance_id: str,
        assignee_id: str,
        assignee_type,
        fields: Dict[str, Any],
        commit: bool = True,
    ) -> str:
        """Create or partially update the assignee's entry; returns its id"""
        assignee_type = _type_value(assignee_type)
        changes = {
            key: value
            for key, value in fields.items()
            if value is not None and key not in IMMUTABLE_FIELDS
        }

        existing = self.lookup(db, event_instance_id, assignee_id, assignee_type)
        if existing:
            if changes:
                if use_firestore():
                    GuestListRepo.update_fs(existing.id, changes)
                else:
                    entry = GuestListRepo.get_sql(db, existing.id)
                    GuestListRepo.update_sql(db, entry, changes, commit=commit)
            logger.info(f"Updated guest list {existing.id} for {assignee_type} {assignee_id}")
            return existing.id

        data = {key: changes.get(key, "") for key in STRING_FIELDS}
        data.update(
            event_instance_id=event_instance_id,
            assignee_id=assignee_id,
            assignee_type=assignee_type,
            max_guests=changes.get("max_guests"),
            is_active=True,
        )
        if use_firestore():
            created_id = GuestListRepo.create_fs(data)["id"]
        else:
            created_id = GuestListRepo.create_sql(db, data, commit=commit).id
        logger.info(f"Created guest list {created_id} for {assignee_type} {assignee_id}")
        return created_id

    def get(self, db: Optional[Session], entry_id: str) -> Optional[GuestListEntryResponse]:
        if use_firestore():
            entry = GuestListRepo.get_fs(entry_id)
        else:
            entry = GuestListRepo.get_sql(db, entry_id)
        return GuestListEntryResponse.model_validate(entry) if entry else None

    def find_active_by_token(self, db: Optional[Session], rsvp_token: str) -> Optional[GuestListEntryResponse]:
        if not rsvp_token:
            return None
        if use_firestore():
            entry = GuestListRepo.find_active_by_token_fs(rsvp_token)
        else:
            entry = GuestListRepo.find_active_by_token_sql(db, rsvp_token)
        return GuestListEntryResponse.model_validate(entry) if entry else None

    def list_by_event_instance(self, db: Optional[Session], event_instance_id: str) -> List[GuestListEntryResponse]:
        """Roster for staff, ordered by assignee name"""
        if use_firestore():
            entries = GuestListRepo.list_by_event_instance_fs(event_instance_id)
        else:
            entries = GuestListRepo.list_by_event_instance_sql(db, event_instance_id)
        return [GuestListEntryResponse.model_validate(e) for e in entries]

    def collapse_duplicates(self, db: Optional[Session], event_instance_id: str) -> int:
        """Deactivate all but the oldest active entry per assignee key.

        Entries are deactivated, not deleted, so RSVPs and check-ins that
        point at them stay resolvable. Returns the number deactivated.
        """
        groups: Dict[tuple, List[GuestListEntryResponse]] = defaultdict(list)
        for entry in self.list_by_event_instance(db, event_instance_id):
            if entry.is_active:
                groups[(entry.assignee_id, entry.assignee_type.value)].append(entry)

        deactivated = 0
        for (assignee_id, assignee_type), entries in groups.items():
            if len(entries) < 2:
                continue
            entries.sort(key=lambda e: (e.created_at is None, e.created_at))
            keeper = entries[0]
            for duplicate in entries[1:]:
                if use_firestore():
                    GuestListRepo.update_fs(duplicate.id, {"is_active": False})
                else:
                    GuestListRepo.update_sql(db, GuestListRepo.get_sql(db, duplicate.id), {"is_active": False})
                deactivated += 1
            logger.warning(
                f"Collapsed {len(entries) - 1} duplicate guest list(s) for {assignee_type} "
                f"{assignee_id} into {keeper.id}"
            )
        return deactivated
