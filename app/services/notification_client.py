"""
Client for the external staffing-notification webhook
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def format_time_12h(value: str) -> str:
    """"18:00" -> "6:00 PM". Anything unparseable is returned unchanged."""
    if not value or ":" not in value:
        return value
    hours, _, minutes = value.partition(":")
    try:
        hour = int(hours)
    except ValueError:
        return value
    if not 0 <= hour <= 23:
        return value
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display_hour}:{minutes} {period}"


def format_month_day(value: str) -> str:
    """"2025-03-07" -> "March 7". Anything unparseable is returned unchanged."""
    if not value or "-" not in value:
        return value
    parts = value.split("-")
    if len(parts) != 3:
        return value
    try:
        month, day = int(parts[1]), int(parts[2])
    except ValueError:
        return value
    if not 1 <= month <= 12:
        return value
    return f"{MONTHS[month - 1]} {day}"


@dataclass
class AssignmentNotification:
    """Data sent to the webhook when someone is assigned to an event instance"""
    legal_name: str
    display_name: str
    email: str
    phone: str
    start_time: str  # HH:MM, 24h
    event_date: str  # YYYY-MM-DD
    event_name: str
    venue: str
    payment_amount: str
    role: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "legalName": self.legal_name,
            "displayName": self.display_name,
            "email": self.email,
            "phone": self.phone,
            "timeSlot": format_time_12h(self.start_time),
            "eventDate": format_month_day(self.event_date),
            "eventName": self.event_name,
            "venue": self.venue,
            "paymentAmount": self.payment_amount,
        }
        if self.role:
            payload["role"] = self.role
        return payload


@dataclass
class NotificationResult:
    guest_list_link: Optional[str] = None


class NotificationClient:
    """One POST per assignment, bounded by a timeout and never retried.

    Raises ``UpstreamUnavailable`` on any transport, status or decoding
    failure; callers decide whether that is fatal.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client_class: type[httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self.webhook_url = settings.NOTIFICATION_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS
        self._http_client_class = http_client_class

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def notify_assignment(self, notification: AssignmentNotification) -> NotificationResult:
        if not self.enabled:
            raise UpstreamUnavailable("Notification webhook is not configured")

        payload = notification.to_payload()
        logger.info(f"Notifying staffing webhook for {notification.display_name} ({notification.email})")

        try:
            # httpx timeouts apply per phase; wait_for bounds the whole exchange
            response = await asyncio.wait_for(self._post(payload), self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(f"Notification webhook timed out after {self.timeout}s") from e
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Notification webhook timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Notification webhook unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            raise UpstreamUnavailable(f"Notification webhook responded with status {response.status_code}")

        if not response.content:
            return NotificationResult()
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamUnavailable("Notification webhook returned a non-JSON body") from e

        return NotificationResult(guest_list_link=self.extract_guest_list_link(body))

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        async with self._http_client_class(timeout=self.timeout) as client:
            return await client.post(self.webhook_url, json=payload)

    @staticmethod
    def extract_guest_list_link(body: Any) -> Optional[str]:
        """Pull ``guestListLink`` out of a response; any other shape means no link"""
        if isinstance(body, list) and len(body) == 1:
            # n8n-style responses wrap the object in a one-item array
            body = body[0]
        if not isinstance(body, dict):
            return None
        link = body.get("guestListLink")
        if isinstance(link, str) and link.strip():
            return link.strip()
        return None
