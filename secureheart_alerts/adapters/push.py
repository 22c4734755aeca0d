"""
Push delivery through Firebase Cloud Messaging (HTTP v1 API).

The client only waits for the provider's acknowledgment; it knows nothing about
whether the recipient's device displayed the alert.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from ..core.config import Settings
from ..core.errors import DeliveryFailed, DeliveryTimeout, PushNotConfigured

logger = logging.getLogger(__name__)

ANDROID_CHANNEL_ID = "emergency_alerts"
APNS_CATEGORY = "EMERGENCY_ALERT"


@dataclass
class PushMessage:
    token: str
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


def build_fcm_payload(message: PushMessage) -> Dict[str, Any]:
    """FCM v1 message with high-priority hints for both platforms."""
    return {
        "message": {
            "token": message.token,
            "notification": {"title": message.title, "body": message.body},
            "data": dict(message.data),
            "android": {
                "priority": "high",
                "notification": {
                    "channel_id": ANDROID_CHANNEL_ID,
                    "sound": "default",
                    "notification_priority": "PRIORITY_MAX",
                },
            },
            "apns": {
                "headers": {"apns-priority": "10"},
                "payload": {
                    "aps": {
                        "alert": {"title": message.title, "body": message.body},
                        "sound": "default",
                        "badge": 1,
                        "category": APNS_CATEGORY,
                    }
                },
            },
        }
    }


class PushClient:
    def send(self, message: PushMessage, timeout: Optional[float] = None) -> str:
        raise NotImplementedError


class UnconfiguredPushClient(PushClient):
    """Used when no provider credentials are present; every send fails."""

    def send(self, message: PushMessage, timeout: Optional[float] = None) -> str:
        raise PushNotConfigured("Push provider credentials are not configured")


class FcmPushClient(PushClient):
    def __init__(
        self,
        project_id: str,
        access_token: str,
        endpoint: str = "https://fcm.googleapis.com/v1",
        session: Optional[requests.Session] = None,
    ):
        self.url = f"{endpoint.rstrip('/')}/projects/{project_id}/messages:send"
        self.access_token = access_token
        self.session = session or requests.Session()

    def send(self, message: PushMessage, timeout: Optional[float] = None) -> str:
        try:
            resp = self.session.post(
                self.url,
                json=build_fcm_payload(message),
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise DeliveryTimeout(f"Push provider timed out after {timeout}s") from exc
        except requests.RequestException as exc:
            raise DeliveryFailed(f"Push provider unreachable: {exc}", transient=True) from exc

        if resp.status_code >= 400:
            transient = resp.status_code >= 500 or resp.status_code == 429
            raise DeliveryFailed(
                f"Push provider rejected message ({resp.status_code}): {resp.text[:200]}",
                transient=transient,
                status_code=resp.status_code,
            )
        return resp.json().get("name", "")


def build_push_client(settings: Settings) -> PushClient:
    if settings.fcm_project_id and settings.fcm_access_token:
        return FcmPushClient(
            project_id=settings.fcm_project_id,
            access_token=settings.fcm_access_token,
            endpoint=settings.fcm_endpoint,
        )
    logger.warning("FCM credentials missing; emergency pushes will be recorded as failed")
    return UnconfiguredPushClient()
