"""
SQLModel table definitions for persistence.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    id: str = Field(primary_key=True)
    auth_token: str = Field(index=True, unique=True)
    push_token: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LinkedContact(SQLModel, table=True):
    # One row per entry of the owner's linkedContacts mapping.
    owner_user_id: str = Field(primary_key=True, foreign_key="user.id")
    contact_user_id: str = Field(primary_key=True, index=True)
    contact_first_name: str
    push_token: str = ""
    linked_at: datetime = Field(default_factory=datetime.utcnow)
    share_location_with_me: bool = False
    share_my_location_with_them: bool = False


class EmergencyRequest(SQLModel, table=True):
    id: str = Field(primary_key=True)
    emergency_event_id: str = Field(index=True, unique=True)
    user_id: str = Field(index=True)
    user_first_name: str
    heart_rate: int
    severity: str
    timestamp: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    share_location: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    processed: Optional[bool] = Field(default=None, index=True)
    processed_at: Optional[datetime] = Field(default=None, index=True)
    results: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    error: Optional[str] = None
    # contact id -> error kind, for contacts whose push failed
    errors: Optional[Any] = Field(default=None, sa_column=Column(JSON))


class EmergencyEvent(SQLModel, table=True):
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    user_first_name: str
    heart_rate: int
    severity: str
    timestamp: float
    created_at: datetime = Field(default_factory=datetime.utcnow)
    location: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    contacts_notified: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    notification_status: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    resolved: bool = False
    resolved_at: Optional[datetime] = None


class LinkRequest(SQLModel, table=True):
    id: str = Field(primary_key=True)
    inviter_user_id: str = Field(index=True)
    inviter_first_name: str
    invitation_code: str
    timestamp: float
    created_at: datetime = Field(default_factory=datetime.utcnow)
    processed: Optional[bool] = None
    processed_at: Optional[datetime] = None
    error: Optional[str] = None


class LinkInvitation(SQLModel, table=True):
    code: str = Field(primary_key=True)
    inviter_user_id: str = Field(index=True)
    inviter_first_name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(index=True)
    used: bool = False
