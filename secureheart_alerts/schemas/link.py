from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LinkRequestCreate(BaseModel):
    inviter_first_name: str = Field(..., min_length=1, max_length=100)
    invitation_code: Optional[str] = Field(
        default=None, min_length=6, max_length=32, description="Generated server side when omitted"
    )
    timestamp: Optional[float] = None


class LinkRequestCreated(BaseModel):
    id: str
    invitation_code: str


class LinkRequestStatus(BaseModel):
    id: str
    invitation_code: str
    processed: Optional[bool] = None
    processed_at: Optional[datetime] = None
    error: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class LinkContactsRequest(BaseModel):
    """Body of the linkContacts callable."""
    invitation_code: str = Field(..., min_length=1)
    contact_first_name: str = Field(..., min_length=1, max_length=100)
    contact_push_token: str = ""


class LinkContactsResponse(BaseModel):
    success: bool
    linked_with: str
    message: str
