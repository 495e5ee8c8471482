"""
Service wiring. Everything is constructed once at import time and shared by
the routers; tests build their own instances instead.
"""

from app.services.assignment_service import AssignmentOrchestrator
from app.services.checkin_service import CheckInLedger
from app.services.guest_list_registry import GuestListRegistry
from app.services.notification_client import NotificationClient
from app.services.rsvp_feed import RSVPFeed
from app.services.token_service import TokenService
from app.services.websocket_manager import WebSocketManager

token_service = TokenService()
guest_list_registry = GuestListRegistry()
notification_client = NotificationClient()
rsvp_feed = RSVPFeed()
websocket_manager = WebSocketManager()

assignment_orchestrator = AssignmentOrchestrator(
    token_service=token_service,
    registry=guest_list_registry,
    notifier=notification_client,
)
checkin_ledger = CheckInLedger(
    token_service=token_service,
    registry=guest_list_registry,
    feed=rsvp_feed,
    websocket_manager=websocket_manager,
)

def get_orchestrator() -> AssignmentOrchestrator:
    return assignment_orchestrator

def get_ledger() -> CheckInLedger:
    return checkin_ledger

def get_registry() -> GuestListRegistry:
    return guest_list_registry
