from .emergency import (
    EmergencyEventRecord,
    EmergencyRequestCreate,
    EmergencyRequestCreated,
    EmergencyRequestStatus,
    Location,
    Severity,
)
from .link import LinkContactsRequest, LinkContactsResponse, LinkRequestCreate, LinkRequestCreated, LinkRequestStatus
from .user import (
    AnonymousSignInResponse,
    ContactSharingUpdate,
    LinkedContactView,
    PushTokenUpdate,
    PushTokenUpdateResponse,
    UserProfile,
)

__all__ = [
    "EmergencyEventRecord",
    "EmergencyRequestCreate",
    "EmergencyRequestCreated",
    "EmergencyRequestStatus",
    "Location",
    "Severity",
    "LinkContactsRequest",
    "LinkContactsResponse",
    "LinkRequestCreate",
    "LinkRequestCreated",
    "LinkRequestStatus",
    "AnonymousSignInResponse",
    "ContactSharingUpdate",
    "LinkedContactView",
    "PushTokenUpdate",
    "PushTokenUpdateResponse",
    "UserProfile",
]
