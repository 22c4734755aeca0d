"""
Error kinds raised by the alerting core.

Per-contact delivery errors are recovered by the caller and recorded as data;
everything else propagates to the trigger handler or the HTTP layer.
"""

from typing import Optional


class AlertError(Exception):
    kind = "Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class UserNotFound(AlertError):
    kind = "UserNotFound"

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class MissingPushToken(AlertError):
    kind = "MissingPushToken"


class DeliveryFailed(AlertError):
    kind = "DeliveryFailed"

    def __init__(self, message: str = "", transient: bool = False, status_code: Optional[int] = None):
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


class DeliveryTimeout(DeliveryFailed):
    kind = "Timeout"

    def __init__(self, message: str = ""):
        super().__init__(message, transient=True)


class PushNotConfigured(DeliveryFailed):
    pass


class InvitationNotFound(AlertError):
    kind = "InvitationNotFound"

    def __init__(self, message: str = "Invalid invitation code"):
        super().__init__(message)


class InvitationExpiredOrUsed(AlertError):
    kind = "InvitationExpiredOrUsed"

    def __init__(self, reason: str = "used"):
        super().__init__("Invitation code has expired or been used")
        self.reason = reason


class InvitationCodeConflict(AlertError):
    kind = "InvitationCodeConflict"


class SelfLinkNotAllowed(AlertError):
    kind = "SelfLinkNotAllowed"

    def __init__(self, message: str = "You cannot link with your own invitation"):
        super().__init__(message)


class Unauthenticated(AlertError):
    kind = "Unauthenticated"

    def __init__(self, message: str = "User must be authenticated"):
        super().__init__(message)


class StoreWriteFailed(AlertError):
    kind = "StoreWriteFailed"


class EmergencyEventExists(AlertError):
    kind = "EmergencyEventExists"

    def __init__(self, event_id: str):
        super().__init__(f"Emergency event {event_id} already exists")
        self.event_id = event_id
