"""
Tests for assignment orchestration and guest list provisioning
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.core.errors import NotFoundError, UpstreamUnavailable, ValidationError
from app.models import Assignment, GuestListEntry
from app.models.assignment import AssigneeType, AssignmentStatus
from app.schemas.assignment import AssignmentCreate, AssignmentUpdate
from app.schemas.event import EventInstanceCreate
from app.services.assignment_service import AssignmentOrchestrator
from app.services.guest_list_registry import GuestListRegistry
from app.services.notification_client import NotificationClient, NotificationResult
from app.services.token_service import TokenService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_assignments.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class FakeNotifier:
    """Records notifications; answers with ``link`` or raises ``error``"""

    def __init__(self, link=None, error=None):
        self.link = link
        self.error = error
        self.sent = []

    async def notify_assignment(self, notification):
        self.sent.append(notification)
        if self.error:
            raise self.error
        return NotificationResult(guest_list_link=self.link)

class BrokenRegistry(GuestListRegistry):
    def upsert_by_assignee(self, *args, **kwargs):
        raise RuntimeError("storage unavailable")

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
def notifier():
    return FakeNotifier()

@pytest.fixture
def registry():
    return GuestListRegistry()

@pytest.fixture
def orchestrator(registry, notifier):
    return AssignmentOrchestrator(
        token_service=TokenService(base_url="https://guests.example.com"),
        registry=registry,
        notifier=notifier,
    )

@pytest.fixture
def instance(db_session, orchestrator):
    return orchestrator.register_event_instance(db_session, EventInstanceCreate(
        event_id="friday-late",
        event_name="Friday Late Show",
        event_date="2025-03-07",
        venue="Main Room",
    ))

def performer(**overrides):
    values = {
        "assignee_name": "DJ Dana",
        "legal_name": "Dana Whitfield",
        "email": "dana@example.com",
        "phone": "555-0100",
        "set_start_time": "20:30",
        "set_end_time": "22:00",
        "payment_amount": 150,
    }
    values.update(overrides)
    return AssignmentCreate(**values)

def crew(**overrides):
    values = {
        "assignee_name": "Sam",
        "email": "sam@example.com",
        "role": "sound",
    }
    values.update(overrides)
    return AssignmentCreate(**values)

@pytest.mark.asyncio
async def test_assignment_survives_notification_failure(db_session, orchestrator, notifier, registry, instance):
    notifier.error = UpstreamUnavailable("webhook down")

    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    assignment = orchestrator.get_assignment(db_session, instance.id, assignment_id)
    assert assignment.status == AssignmentStatus.PENDING
    assert assignment.guest_list_link == ""
    assert assignment.assignee_id == "dana@example.com"

    entry = registry.lookup(db_session, instance.id, "dana@example.com", AssigneeType.PERFORMER)
    assert entry is not None
    assert entry.guest_list_link == ""
    assert entry.event_name == "Friday Late Show"
    assert assignment.rsvp_link == (
        f"https://guests.example.com/rsvp/{instance.id}/dana%40example.com/{entry.rsvp_token}"
    )

@pytest.mark.asyncio
async def test_assignment_survives_unexpected_notifier_error(db_session, orchestrator, notifier, registry, instance):
    notifier.error = RuntimeError("bad webhook url")

    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    assert orchestrator.get_assignment(db_session, instance.id, assignment_id).guest_list_link == ""
    assert registry.lookup(db_session, instance.id, "dana@example.com", AssigneeType.PERFORMER) is not None

@pytest.mark.asyncio
async def test_assignment_survives_invalid_webhook_url(db_session, registry, instance):
    orchestrator = AssignmentOrchestrator(
        TokenService(),
        registry,
        NotificationClient(webhook_url="http://hooks.example.com:notaport/x", timeout=1.0),
    )

    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    assert orchestrator.get_assignment(db_session, instance.id, assignment_id).status == AssignmentStatus.PENDING

@pytest.mark.asyncio
async def test_assignment_survives_provisioning_failure(db_session, notifier, instance):
    orchestrator = AssignmentOrchestrator(TokenService(), BrokenRegistry(), notifier)

    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    assert orchestrator.get_assignment(db_session, instance.id, assignment_id)
    assert db_session.query(GuestListEntry).count() == 0
    assert len(notifier.sent) == 1

@pytest.mark.asyncio
async def test_returned_link_is_reconciled(db_session, orchestrator, notifier, registry, instance):
    notifier.link = "https://lists.example.com/dana"

    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    assignment = orchestrator.get_assignment(db_session, instance.id, assignment_id)
    entry = registry.lookup(db_session, instance.id, "dana@example.com", AssigneeType.PERFORMER)
    assert assignment.guest_list_link == "https://lists.example.com/dana"
    assert entry.guest_list_link == "https://lists.example.com/dana"
    assert entry.assignee_name == "DJ Dana"

@pytest.mark.asyncio
async def test_notification_payload(db_session, orchestrator, notifier, instance):
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    payload = notifier.sent[0].to_payload()
    assert payload["timeSlot"] == "8:30 PM"
    assert payload["eventDate"] == "March 7"
    assert payload["paymentAmount"] == "150"
    assert payload["legalName"] == "Dana Whitfield"
    assert "role" not in payload

@pytest.mark.asyncio
async def test_crew_time_slot_falls_back_to_performer_set(db_session, orchestrator, notifier, instance):
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.CREW, crew())

    crew_notification = notifier.sent[-1]
    assert crew_notification.start_time == "20:30"
    assert crew_notification.role == "SOUND"
    assert crew_notification.legal_name == "Sam"

@pytest.mark.asyncio
async def test_crew_time_slot_default(db_session, orchestrator, notifier, instance):
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.CREW, crew())

    assert notifier.sent[0].to_payload()["timeSlot"] == "6:00 PM"

@pytest.mark.asyncio
async def test_unknown_event_instance_writes_nothing(db_session, orchestrator, notifier):
    with pytest.raises(NotFoundError):
        await orchestrator.add_assignment(db_session, "missing", AssigneeType.PERFORMER, performer())

    assert db_session.query(Assignment).count() == 0
    assert db_session.query(GuestListEntry).count() == 0
    assert notifier.sent == []

@pytest.mark.asyncio
async def test_blank_name_is_rejected(db_session, orchestrator, instance):
    with pytest.raises(ValidationError):
        await orchestrator.add_assignment(db_session, instance.id, AssigneeType.CREW, crew(assignee_name="  "))

    assert db_session.query(Assignment).count() == 0

@pytest.mark.asyncio
async def test_backfill_is_idempotent(db_session, orchestrator, registry, instance):
    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    for _ in range(2):
        assignment = orchestrator.backfill_guest_list_link(
            db_session, instance.id, assignment_id, " https://lists.example.com/dana "
        )

    assert assignment.guest_list_link == "https://lists.example.com/dana"
    entries = registry.list_by_event_instance(db_session, instance.id)
    assert len(entries) == 1
    assert entries[0].guest_list_link == "https://lists.example.com/dana"

def test_backfill_requires_a_link(db_session, orchestrator, instance):
    with pytest.raises(ValidationError):
        orchestrator.reconcile_guest_list_link(db_session, instance.id, AssigneeType.CREW, "sam@example.com", "  ")

@pytest.mark.asyncio
async def test_reissue_invalidates_old_token(db_session, orchestrator, registry, instance):
    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())
    old_token = registry.lookup(db_session, instance.id, "dana@example.com", AssigneeType.PERFORMER).rsvp_token

    new_link = orchestrator.reissue_rsvp_link(db_session, instance.id, assignment_id)

    new_token = new_link.rsplit("/", 1)[1]
    assert new_token != old_token
    assert registry.find_active_by_token(db_session, old_token) is None
    assert registry.find_active_by_token(db_session, new_token) is not None
    assert orchestrator.get_assignment(db_session, instance.id, assignment_id).rsvp_link == new_link
    assert len(registry.list_by_event_instance(db_session, instance.id)) == 1

@pytest.mark.asyncio
async def test_readding_assignee_reuses_guest_list(db_session, orchestrator, registry, instance):
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer(set_start_time="23:00"))

    assert len(orchestrator.list_assignments(db_session, instance.id)) == 2
    assert len(registry.list_by_event_instance(db_session, instance.id)) == 1

@pytest.mark.asyncio
async def test_update_status_and_details(db_session, orchestrator, instance):
    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    orchestrator.update_assignment_status(db_session, instance.id, assignment_id, AssignmentStatus.CONFIRMED)
    updated = orchestrator.update_assignment(
        db_session, instance.id, assignment_id, AssignmentUpdate(set_end_time="23:30", notes="encore")
    )

    assert updated.status == AssignmentStatus.CONFIRMED
    assert updated.set_end_time == "23:30"
    assert updated.set_start_time == "20:30"
    assert updated.notes == "encore"

    with pytest.raises(NotFoundError):
        orchestrator.update_assignment_status(db_session, instance.id, "missing", AssignmentStatus.CANCELLED)

@pytest.mark.asyncio
async def test_remove_does_not_cascade(db_session, orchestrator, registry, instance):
    assignment_id = await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())

    orchestrator.remove_assignment(db_session, instance.id, assignment_id)

    assert orchestrator.list_assignments(db_session, instance.id) == []
    entry = registry.lookup(db_session, instance.id, "dana@example.com", AssigneeType.PERFORMER)
    assert entry is not None
    assert entry.is_active is True

    with pytest.raises(NotFoundError):
        orchestrator.remove_assignment(db_session, instance.id, assignment_id)

@pytest.mark.asyncio
async def test_list_assignments_by_type(db_session, orchestrator, instance):
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.PERFORMER, performer())
    await orchestrator.add_assignment(db_session, instance.id, AssigneeType.CREW, crew())

    crew_only = orchestrator.list_assignments(db_session, instance.id, AssigneeType.CREW)
    assert [a.assignee_name for a in crew_only] == ["Sam"]
