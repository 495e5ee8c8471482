"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Each repository exposes ``*_sql`` methods that take a session and return ORM
objects, and ``*_fs`` methods that return plain dicts carrying an ``id`` key.
Services pick a side with ``use_firestore()`` and normalise the result into a
response schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from firebase_admin import firestore
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Assignment, CheckInRecord, EventInstance, GuestListEntry, RSVPRecord
from app.services.firebase_client import (
    CHECK_INS_COLLECTION,
    EVENT_INSTANCES_COLLECTION,
    GUEST_LISTS_COLLECTION,
    RSVP_COLLECTION,
    clean_fields,
    collection,
    doc_to_dict,
    get_firestore_client,
)


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def _apply(obj: Any, changes: Dict[str, Any]) -> None:
    for key, value in changes.items():
        setattr(obj, key, value)


# -------- Event instance repository --------

class EventInstanceRepo:
    @staticmethod
    def get_sql(db: Session, instance_id: str) -> Optional[EventInstance]:
        return db.query(EventInstance).filter(EventInstance.id == instance_id).first()

    @staticmethod
    def create_sql(db: Session, data: Dict[str, Any]) -> EventInstance:
        instance = EventInstance(**data)
        db.add(instance)
        db.commit()
        db.refresh(instance)
        return instance

    # Firestore shape: collection "event-instances/{id}", assignments embedded as an array
    @staticmethod
    def get_fs(instance_id: str) -> Optional[Dict[str, Any]]:
        doc = collection(EVENT_INSTANCES_COLLECTION).document(instance_id).get()
        return doc_to_dict(doc) if doc.exists else None

    @staticmethod
    def create_fs(data: Dict[str, Any]) -> Dict[str, Any]:
        ref = collection(EVENT_INSTANCES_COLLECTION).document()
        payload = clean_fields({**data, "assignments": [], "created_at": _now_iso(), "updated_at": _now_iso()})
        ref.set(payload)
        return {**payload, "id": ref.id}


# -------- Assignment repository --------

class AssignmentRepo:
    @staticmethod
    def list_sql(db: Session, instance_id: str) -> List[Assignment]:
        return db.query(Assignment).filter(
            Assignment.event_instance_id == instance_id
        ).order_by(Assignment.assigned_at).all()

    @staticmethod
    def get_sql(db: Session, instance_id: str, assignment_id: str) -> Optional[Assignment]:
        return db.query(Assignment).filter(
            Assignment.event_instance_id == instance_id,
            Assignment.id == assignment_id,
        ).first()

    @staticmethod
    def add_sql(db: Session, data: Dict[str, Any]) -> Assignment:
        assignment = Assignment(**data)
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        return assignment

    @staticmethod
    def update_matching_sql(
        db: Session,
        instance_id: str,
        match: Dict[str, Any],
        changes: Dict[str, Any],
        commit: bool = True,
    ) -> int:
        """Apply ``changes`` to every assignment whose fields equal ``match``"""
        query = db.query(Assignment).filter(Assignment.event_instance_id == instance_id)
        for key, value in match.items():
            query = query.filter(getattr(Assignment, key) == value)
        rows = query.all()
        for row in rows:
            _apply(row, changes)
        if commit:
            db.commit()
        return len(rows)

    @staticmethod
    def remove_sql(db: Session, instance_id: str, assignment_id: str) -> bool:
        assignment = AssignmentRepo.get_sql(db, instance_id, assignment_id)
        if not assignment:
            return False
        db.delete(assignment)
        db.commit()
        return True

    # Firestore: the assignment list lives on the instance document
    @staticmethod
    def list_fs(instance_id: str) -> List[Dict[str, Any]]:
        instance = EventInstanceRepo.get_fs(instance_id)
        return list(instance.get("assignments") or []) if instance else []

    @staticmethod
    def _save_all_fs(instance_id: str, assignments: List[Dict[str, Any]]) -> None:
        collection(EVENT_INSTANCES_COLLECTION).document(instance_id).set({
            "assignments": assignments,
            "updated_at": _now_iso(),
        }, merge=True)

    @staticmethod
    def add_fs(instance_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        assignments = AssignmentRepo.list_fs(instance_id)
        item = clean_fields(data)
        assignments.append(item)
        AssignmentRepo._save_all_fs(instance_id, assignments)
        return item

    @staticmethod
    def update_matching_fs(instance_id: str, match: Dict[str, Any], changes: Dict[str, Any]) -> int:
        assignments = AssignmentRepo.list_fs(instance_id)
        matched = 0
        updated = []
        for item in assignments:
            if all(item.get(key) == value for key, value in match.items()):
                item = {**item, **clean_fields(changes)}
                matched += 1
            updated.append(item)
        if matched:
            AssignmentRepo._save_all_fs(instance_id, updated)
        return matched

    @staticmethod
    def remove_fs(instance_id: str, assignment_id: str) -> bool:
        assignments = AssignmentRepo.list_fs(instance_id)
        remaining = [a for a in assignments if a.get("id") != assignment_id]
        if len(remaining) == len(assignments):
            return False
        AssignmentRepo._save_all_fs(instance_id, remaining)
        return True


# -------- Guest list repository --------

class GuestListRepo:
    @staticmethod
    def find_by_assignee_sql(
        db: Session, instance_id: str, assignee_id: str, assignee_type: str
    ) -> Optional[GuestListEntry]:
        return db.query(GuestListEntry).filter(
            GuestListEntry.event_instance_id == instance_id,
            GuestListEntry.assignee_id == assignee_id,
            GuestListEntry.assignee_type == assignee_type,
        ).order_by(GuestListEntry.created_at).first()

    @staticmethod
    def get_sql(db: Session, entry_id: str) -> Optional[GuestListEntry]:
        return db.query(GuestListEntry).filter(GuestListEntry.id == entry_id).first()

    @staticmethod
    def find_active_by_token_sql(db: Session, rsvp_token: str) -> Optional[GuestListEntry]:
        return db.query(GuestListEntry).filter(
            GuestListEntry.rsvp_token == rsvp_token,
            GuestListEntry.is_active == True,
        ).first()

    @staticmethod
    def list_by_event_instance_sql(db: Session, instance_id: str) -> List[GuestListEntry]:
        return db.query(GuestListEntry).filter(
            GuestListEntry.event_instance_id == instance_id
        ).order_by(GuestListEntry.assignee_name, GuestListEntry.created_at).all()

    @staticmethod
    def create_sql(db: Session, data: Dict[str, Any], commit: bool = True) -> GuestListEntry:
        entry = GuestListEntry(**data)
        db.add(entry)
        if commit:
            db.commit()
            db.refresh(entry)
        else:
            db.flush()
        return entry

    @staticmethod
    def update_sql(db: Session, entry: GuestListEntry, changes: Dict[str, Any], commit: bool = True) -> None:
        _apply(entry, changes)
        entry.updated_at = datetime.utcnow()
        if commit:
            db.commit()

    # Firestore guest list docs under collection "guest-lists"
    @staticmethod
    def find_by_assignee_fs(instance_id: str, assignee_id: str, assignee_type: str) -> Optional[Dict[str, Any]]:
        docs = collection(GUEST_LISTS_COLLECTION) \
            .where("event_instance_id", "==", instance_id) \
            .where("assignee_id", "==", assignee_id) \
            .where("assignee_type", "==", assignee_type) \
            .get()
        if not docs:
            return None
        return min((doc_to_dict(d) for d in docs), key=lambda e: e.get("created_at") or "")

    @staticmethod
    def get_fs(entry_id: str) -> Optional[Dict[str, Any]]:
        doc = collection(GUEST_LISTS_COLLECTION).document(entry_id).get()
        return doc_to_dict(doc) if doc.exists else None

    @staticmethod
    def find_active_by_token_fs(rsvp_token: str) -> Optional[Dict[str, Any]]:
        docs = collection(GUEST_LISTS_COLLECTION) \
            .where("rsvp_token", "==", rsvp_token) \
            .where("is_active", "==", True) \
            .limit(1) \
            .get()
        return doc_to_dict(docs[0]) if docs else None

    @staticmethod
    def list_by_event_instance_fs(instance_id: str) -> List[Dict[str, Any]]:
        docs = collection(GUEST_LISTS_COLLECTION) \
            .where("event_instance_id", "==", instance_id) \
            .order_by("assignee_name") \
            .get()
        return [doc_to_dict(d) for d in docs]

    @staticmethod
    def create_fs(data: Dict[str, Any]) -> Dict[str, Any]:
        ref = collection(GUEST_LISTS_COLLECTION).document()
        payload = clean_fields({**data, "created_at": _now_iso(), "updated_at": _now_iso()})
        ref.set(payload)
        return {**payload, "id": ref.id}

    @staticmethod
    def update_fs(entry_id: str, changes: Dict[str, Any]) -> None:
        collection(GUEST_LISTS_COLLECTION).document(entry_id).set(
            clean_fields({**changes, "updated_at": _now_iso()}),
            merge=True,
        )


# -------- RSVP repository --------

class RSVPRepo:
    @staticmethod
    def get_sql(db: Session, rsvp_id: str) -> Optional[RSVPRecord]:
        return db.query(RSVPRecord).filter(RSVPRecord.id == rsvp_id).first()

    @staticmethod
    def find_by_admission_code_sql(db: Session, admission_code: str) -> Optional[RSVPRecord]:
        return db.query(RSVPRecord).filter(RSVPRecord.admission_code == admission_code).first()

    @staticmethod
    def list_by_event_instance_sql(db: Session, instance_id: str) -> List[RSVPRecord]:
        return db.query(RSVPRecord).filter(
            RSVPRecord.event_instance_id == instance_id
        ).order_by(RSVPRecord.created_at.desc()).all()

    @staticmethod
    def create_sql(db: Session, data: Dict[str, Any]) -> RSVPRecord:
        rsvp = RSVPRecord(**data)
        db.add(rsvp)
        db.commit()
        db.refresh(rsvp)
        return rsvp

    @staticmethod
    def update_sql(db: Session, rsvp: RSVPRecord, changes: Dict[str, Any], commit: bool = True) -> None:
        _apply(rsvp, changes)
        rsvp.updated_at = datetime.utcnow()
        if commit:
            db.commit()

    # Firestore RSVP docs under collection "guest-rsvps"
    @staticmethod
    def get_fs(rsvp_id: str) -> Optional[Dict[str, Any]]:
        doc = collection(RSVP_COLLECTION).document(rsvp_id).get()
        return doc_to_dict(doc) if doc.exists else None

    @staticmethod
    def find_by_admission_code_fs(admission_code: str) -> Optional[Dict[str, Any]]:
        docs = collection(RSVP_COLLECTION).where("admission_code", "==", admission_code).limit(1).get()
        return doc_to_dict(docs[0]) if docs else None

    @staticmethod
    def _event_instance_query_fs(instance_id: str):
        return collection(RSVP_COLLECTION) \
            .where("event_instance_id", "==", instance_id) \
            .order_by("created_at", direction=firestore.Query.DESCENDING)

    @staticmethod
    def list_by_event_instance_fs(instance_id: str) -> List[Dict[str, Any]]:
        return [doc_to_dict(d) for d in RSVPRepo._event_instance_query_fs(instance_id).get()]

    @staticmethod
    def watch_event_instance_fs(instance_id: str, on_change: Callable[[List[Dict[str, Any]]], None]):
        """Start a snapshot listener; returns the watch (call ``unsubscribe()`` on it)"""
        def _on_snapshot(docs, changes, read_time):
            on_change([doc_to_dict(d) for d in docs])

        return RSVPRepo._event_instance_query_fs(instance_id).on_snapshot(_on_snapshot)

    @staticmethod
    def create_fs(data: Dict[str, Any]) -> Dict[str, Any]:
        ref = collection(RSVP_COLLECTION).document()
        payload = clean_fields({**data, "created_at": _now_iso(), "updated_at": _now_iso()})
        ref.set(payload)
        return {**payload, "id": ref.id}

    @staticmethod
    def update_fs(rsvp_id: str, changes: Dict[str, Any]) -> None:
        payload = clean_fields({**changes, "updated_at": _now_iso()})
        # None means "clear the field" for RSVP updates (check-out)
        for key, value in changes.items():
            if value is None:
                payload[key] = firestore.DELETE_FIELD
        collection(RSVP_COLLECTION).document(rsvp_id).update(payload)


# -------- Check-in ledger repository --------

class CheckInRepo:
    @staticmethod
    def record_sql(
        db: Session, rsvp: RSVPRecord, rsvp_changes: Dict[str, Any], ledger_data: Dict[str, Any]
    ) -> CheckInRecord:
        """Update the RSVP and append the ledger row in one commit"""
        RSVPRepo.update_sql(db, rsvp, rsvp_changes, commit=False)
        record = CheckInRecord(**ledger_data)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def list_by_event_instance_sql(db: Session, instance_id: str) -> List[CheckInRecord]:
        return db.query(CheckInRecord).filter(
            CheckInRecord.event_instance_id == instance_id
        ).order_by(CheckInRecord.checked_in_at.desc()).all()

    @staticmethod
    def list_by_guest_list_sql(db: Session, guest_list_entry_id: str) -> List[CheckInRecord]:
        return db.query(CheckInRecord).filter(
            CheckInRecord.guest_list_entry_id == guest_list_entry_id
        ).order_by(CheckInRecord.checked_in_at.desc()).all()

    # Firestore ledger docs under collection "check-ins"
    @staticmethod
    def record_fs(rsvp_id: str, rsvp_changes: Dict[str, Any], ledger_data: Dict[str, Any]) -> Dict[str, Any]:
        fs = get_firestore_client()
        batch = fs.batch()
        batch.update(
            fs.collection(RSVP_COLLECTION).document(rsvp_id),
            clean_fields({**rsvp_changes, "updated_at": _now_iso()}),
        )
        ref = fs.collection(CHECK_INS_COLLECTION).document()
        payload = clean_fields({**ledger_data, "created_at": _now_iso()})
        batch.set(ref, payload)
        batch.commit()
        return {**payload, "id": ref.id}

    @staticmethod
    def list_by_event_instance_fs(instance_id: str) -> List[Dict[str, Any]]:
        docs = collection(CHECK_INS_COLLECTION) \
            .where("event_instance_id", "==", instance_id) \
            .order_by("checked_in_at", direction=firestore.Query.DESCENDING) \
            .get()
        return [doc_to_dict(d) for d in docs]

    @staticmethod
    def list_by_guest_list_fs(guest_list_entry_id: str) -> List[Dict[str, Any]]:
        docs = collection(CHECK_INS_COLLECTION) \
            .where("guest_list_entry_id", "==", guest_list_entry_id) \
            .order_by("checked_in_at", direction=firestore.Query.DESCENDING) \
            .get()
        return [doc_to_dict(d) for d in docs]
