"""
Tests for guest list lookup-then-upsert
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.models import GuestListEntry
from app.models.assignment import AssigneeType
from app.services.guest_list_registry import GuestListRegistry

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_registry.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def registry():
    return GuestListRegistry()

def test_sequential_upserts_never_duplicate(db_session, registry):
    first = registry.upsert_by_assignee(
        db_session, "e1", "dana@example.com", AssigneeType.PERFORMER,
        {"assignee_name": "DJ Dana", "rsvp_token": "tok1"},
    )
    second = registry.upsert_by_assignee(
        db_session, "e1", "dana@example.com", AssigneeType.PERFORMER,
        {"guest_list_link": "https://lists.example.com/dana"},
    )

    assert first == second
    entries = registry.list_by_event_instance(db_session, "e1")
    assert len(entries) == 1
    assert entries[0].assignee_name == "DJ Dana"
    assert entries[0].guest_list_link == "https://lists.example.com/dana"

def test_key_includes_assignee_type(db_session, registry):
    performer = registry.upsert_by_assignee(db_session, "e1", "sam@example.com", "performer", {})
    crew = registry.upsert_by_assignee(db_session, "e1", "sam@example.com", "crew", {})

    assert performer != crew
    assert registry.lookup(db_session, "e1", "sam@example.com", AssigneeType.CREW).id == crew

def test_create_defaults(db_session, registry):
    entry_id = registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.CREW, {"assignee_name": "Sam"})
    entry = registry.get(db_session, entry_id)

    assert entry.is_active is True
    assert entry.guest_list_link == ""
    assert entry.description == ""
    assert entry.rsvp_token == ""
    assert entry.max_guests is None

def test_update_ignores_none_and_key_fields(db_session, registry):
    entry_id = registry.upsert_by_assignee(
        db_session, "e1", "a1", AssigneeType.PERFORMER,
        {"assignee_name": "DJ Dana", "notes": "bring ID"},
    )

    registry.upsert_by_assignee(
        db_session, "e1", "a1", AssigneeType.PERFORMER,
        {"id": "other", "assignee_id": "a2", "event_instance_id": "e9", "notes": None, "venue": "Main Room"},
    )

    entry = registry.get(db_session, entry_id)
    assert entry.id == entry_id
    assert entry.assignee_id == "a1"
    assert entry.event_instance_id == "e1"
    assert entry.notes == "bring ID"
    assert entry.venue == "Main Room"

def test_update_keeps_is_active_unless_supplied(db_session, registry):
    entry_id = registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.PERFORMER, {})
    registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.PERFORMER, {"is_active": False})
    assert registry.get(db_session, entry_id).is_active is False

    registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.PERFORMER, {"notes": "late"})
    assert registry.get(db_session, entry_id).is_active is False

def test_find_active_by_token(db_session, registry):
    entry_id = registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.PERFORMER, {"rsvp_token": "tok1"})

    assert registry.find_active_by_token(db_session, "tok1").id == entry_id
    assert registry.find_active_by_token(db_session, "") is None
    assert registry.find_active_by_token(db_session, "nope") is None

    registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.PERFORMER, {"is_active": False})
    assert registry.find_active_by_token(db_session, "tok1") is None

def test_roster_ordered_by_assignee_name(db_session, registry):
    for assignee_id, name in [("a1", "Zoe"), ("a2", "Ana"), ("a3", "Mo")]:
        registry.upsert_by_assignee(db_session, "e1", assignee_id, AssigneeType.CREW, {"assignee_name": name})
    registry.upsert_by_assignee(db_session, "e2", "a4", AssigneeType.CREW, {"assignee_name": "Bea"})

    names = [e.assignee_name for e in registry.list_by_event_instance(db_session, "e1")]
    assert names == ["Ana", "Mo", "Zoe"]

def test_collapse_duplicates_keeps_oldest(db_session, registry):
    # Two writers that both took the create branch
    now = datetime.utcnow()
    for offset, token in [(0, "tok-old"), (5, "tok-new")]:
        db_session.add(GuestListEntry(
            event_instance_id="e1",
            assignee_type="performer",
            assignee_id="a1",
            assignee_name="DJ Dana",
            rsvp_token=token,
            is_active=True,
            created_at=now + timedelta(seconds=offset),
        ))
    registry.upsert_by_assignee(db_session, "e1", "a2", AssigneeType.PERFORMER, {"assignee_name": "Solo"})
    db_session.commit()

    deactivated = registry.collapse_duplicates(db_session, "e1")

    assert deactivated == 1
    active = [e for e in registry.list_by_event_instance(db_session, "e1") if e.is_active]
    assert len(active) == 2
    assert registry.find_active_by_token(db_session, "tok-old") is not None
    assert registry.find_active_by_token(db_session, "tok-new") is None
    assert registry.collapse_duplicates(db_session, "e1") == 0

class LockstepRegistry(GuestListRegistry):
    """Holds every writer after its lookup until all writers have looked up"""

    def __init__(self, barrier):
        self.barrier = barrier

    def lookup(self, *args, **kwargs):
        found = super().lookup(*args, **kwargs)
        self.barrier.wait(timeout=5)
        return found

def test_racing_upserts_are_repaired_by_collapse(db_session, registry):
    writers = 2
    racing = LockstepRegistry(threading.Barrier(writers))

    def upsert(token):
        db = TestingSessionLocal()
        try:
            return racing.upsert_by_assignee(
                db, "e1", "a1", AssigneeType.PERFORMER,
                {"assignee_name": "DJ Dana", "rsvp_token": token},
            )
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=writers) as pool:
        ids = list(pool.map(upsert, ["tok-a", "tok-b"]))

    # Both writers missed each other's entry
    assert len(set(ids)) == 2
    assert len(registry.list_by_event_instance(db_session, "e1")) == 2

    assert registry.collapse_duplicates(db_session, "e1") == 1
    active = [e for e in registry.list_by_event_instance(db_session, "e1") if e.is_active]
    assert len(active) == 1

    # Later upserts land on the surviving entry
    survivor = registry.upsert_by_assignee(db_session, "e1", "a1", AssigneeType.PERFORMER, {"notes": "vip"})
    assert survivor == active[0].id
