from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AnonymousSignInResponse(BaseModel):
    user_id: str
    auth_token: str


class UserProfile(BaseModel):
    id: str
    has_push_token: bool
    created_at: datetime


class PushTokenUpdate(BaseModel):
    push_token: str = Field(..., min_length=1, max_length=4096)


class PushTokenUpdateResponse(BaseModel):
    status: str = "ok"
    contacts_refreshed: int = 0


class LinkedContactView(BaseModel):
    contact_user_id: str
    contact_first_name: str
    linked_at: datetime
    share_location_with_me: bool
    share_my_location_with_them: bool
    has_push_token: bool
    model_config = ConfigDict(from_attributes=True)


class ContactSharingUpdate(BaseModel):
    share_location_with_me: Optional[bool] = None
    share_my_location_with_them: Optional[bool] = None
