from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    critical = "critical"
    high = "high"
    moderate = "moderate"


class Location(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class EmergencyRequestCreate(BaseModel):
    """Body of POST /notifications. The reporting user comes from the bearer token."""
    emergency_event_id: str = Field(..., min_length=1, description="Client generated, unique per alert")
    user_first_name: str = Field(..., min_length=1, max_length=100)
    heart_rate: int = Field(..., gt=0, lt=400, description="Beats per minute")
    severity: Severity
    timestamp: float = Field(..., description="Detection time as sent by the client")
    location: Optional[Location] = None
    share_location: bool = False


class EmergencyRequestCreated(BaseModel):
    id: str
    emergency_event_id: str


class EmergencyRequestStatus(BaseModel):
    id: str
    emergency_event_id: str
    processed: Optional[bool] = None
    processed_at: Optional[datetime] = None
    results: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    errors: Optional[Dict[str, str]] = None
    model_config = ConfigDict(from_attributes=True)


class EmergencyEventRecord(BaseModel):
    id: str
    user_id: str
    user_first_name: str
    heart_rate: int
    severity: Severity
    timestamp: float
    created_at: datetime
    location: Optional[Location] = None
    contacts_notified: List[str] = Field(default_factory=list)
    notification_status: Dict[str, str] = Field(default_factory=dict)
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
