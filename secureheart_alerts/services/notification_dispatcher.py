"""
Per-contact emergency push delivery.

Each linked contact gets its own message and its own outcome. Location is only
embedded when the reporting client allowed it, the contact entry consents to it
and a location was actually captured; the check runs again for every contact.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..adapters.push import PushClient, PushMessage
from ..core.errors import DeliveryFailed, MissingPushToken
from ..repositories import db_models

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"

SEVERITY_MARKERS = {
    "critical": "🚨",
    "high": "⚠️",
    "moderate": "💛",
}
ALERT_TITLE = "SecureHeart Emergency Alert"


def _number_text(value: float) -> str:
    """Render numbers the way the mobile clients print them (no trailing .0)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class DeliveryOutcome:
    contact_user_id: str
    status: str
    error_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == SENT


class NotificationDispatcher:
    def __init__(
        self,
        push_client: PushClient,
        timeout: float = 5.0,
        max_retries: int = 0,
        retry_backoff: float = 0.5,
        max_concurrency: int = 10,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.push_client = push_client
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_backoff = retry_backoff
        self.max_concurrency = max(1, max_concurrency)
        self._sleep = sleep

    @staticmethod
    def location_shared(contact: db_models.LinkedContact, request: db_models.EmergencyRequest) -> bool:
        has_location = request.latitude is not None and request.longitude is not None
        return bool(request.share_location and contact.share_location_with_me and has_location)

    def compose_message(
        self, contact: db_models.LinkedContact, request: db_models.EmergencyRequest
    ) -> PushMessage:
        share = self.location_shared(contact, request)
        marker = SEVERITY_MARKERS.get(request.severity, SEVERITY_MARKERS["moderate"])
        title = f"{marker} {ALERT_TITLE}"
        body = f"{request.user_first_name} is experiencing a heart rate emergency: {request.heart_rate} BPM"
        if share:
            body += f"\nLocation: {request.latitude:.6f}, {request.longitude:.6f}"

        data = {
            "type": "emergency_alert",
            "emergencyEventId": request.emergency_event_id,
            "userId": request.user_id,
            "userFirstName": request.user_first_name,
            "heartRate": str(request.heart_rate),
            "severity": request.severity,
            "timestamp": _number_text(request.timestamp),
            "hasLocation": "true" if share else "false",
            "latitude": _number_text(request.latitude) if share else "",
            "longitude": _number_text(request.longitude) if share else "",
        }
        return PushMessage(token=contact.push_token, title=title, body=body, data=data)

    def send(
        self,
        contact: db_models.LinkedContact,
        request: db_models.EmergencyRequest,
        notification_id: str,
    ) -> str:
        """Deliver one alert; raises on any failure so the caller can record it."""
        if not contact.push_token:
            raise MissingPushToken(f"No push token for contact {contact.contact_first_name}")

        message = self.compose_message(contact, request)
        attempt = 0
        while True:
            try:
                message_id = self.push_client.send(message, timeout=self.timeout)
                break
            except DeliveryFailed as exc:
                if not exc.transient or attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.info(
                    "Retrying push for %s on %s (attempt %s): %s",
                    contact.contact_user_id, notification_id, attempt, exc.kind,
                )
                self._sleep(self.retry_backoff * attempt)

        logger.info("Emergency push sent to %s for %s", contact.contact_first_name, notification_id)
        return message_id

    def dispatch_all(
        self,
        contacts: Sequence[db_models.LinkedContact],
        request: db_models.EmergencyRequest,
        notification_id: str,
    ) -> Dict[str, DeliveryOutcome]:
        """Send to every contact concurrently and wait for all of them.

        A failed send never cancels its siblings; it only becomes a failed outcome.
        """
        if not contacts:
            return {}

        outcomes: Dict[str, DeliveryOutcome] = {}
        workers = min(self.max_concurrency, len(contacts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push") as pool:
            futures = [(c, pool.submit(self.send, c, request, notification_id)) for c in contacts]
            for contact, future in futures:
                contact_id = contact.contact_user_id
                try:
                    future.result()
                    outcomes[contact_id] = DeliveryOutcome(contact_user_id=contact_id, status=SENT)
                except Exception as exc:
                    kind = getattr(exc, "kind", type(exc).__name__)
                    logger.warning("Failed to notify %s for %s: %s (%s)", contact_id, notification_id, kind, exc)
                    outcomes[contact_id] = DeliveryOutcome(
                        contact_user_id=contact_id, status=FAILED, error_kind=kind, error=str(exc)
                    )
        return outcomes


def summarize(outcomes: Dict[str, DeliveryOutcome]) -> Dict[str, str]:
    return {contact_id: outcome.status for contact_id, outcome in outcomes.items()}


def sent_contacts(outcomes: Dict[str, DeliveryOutcome]) -> List[str]:
    return [contact_id for contact_id, outcome in outcomes.items() if outcome.sent]


def failure_kinds(outcomes: Dict[str, DeliveryOutcome]) -> Dict[str, str]:
    """Error kind per failed contact, e.g. Timeout vs DeliveryFailed."""
    return {
        contact_id: outcome.error_kind or "DeliveryFailed"
        for contact_id, outcome in outcomes.items()
        if not outcome.sent
    }
