from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum
import uuid

class EmergencyType(str, Enum):
    SOS_BUTTON = "SOS_BUTTON"
    AUTO_DETECT = "AUTO_DETECT"
    GEOFENCE_VIOLATION = "GEOFENCE_VIOLATION"
    PANIC_BUTTON = "PANIC_BUTTON"

class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class IncidentStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

class GeoPoint(SQLModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

class EmergencyEvent(SQLModel):
    """What the SOS trigger hands to the alert pipeline"""
    location: GeoPoint
    timestamp: str = Field(min_length=1)  # ISO-8601
    emergency_type: EmergencyType
    user_id: str
    digital_id: str
    additional_info: Optional[str] = None
    severity: Optional[Severity] = None

class EmergencyIncidentBase(SQLModel):
    user_id: str = Field(index=True)
    digital_id: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    timestamp: str
    type: EmergencyType
    severity: Severity = Severity.HIGH
    status: IncidentStatus = IncidentStatus.ACTIVE
    description: Optional[str] = None
    response_time: Optional[int] = None  # seconds
    resolved_at: Optional[str] = None
    resolved_by: Optional[str] = None

class EmergencyIncident(EmergencyIncidentBase, table=True):
    __tablename__ = "emergency_incidents"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    # Every contact an SMS was attempted for
    notified_contacts: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    # Contacts whose SMS or email send reported success
    delivered_contacts: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True))
    )

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(lat=self.latitude, lng=self.longitude)

class EmergencyIncidentCreate(EmergencyIncidentBase):
    notified_contacts: List[str] = []

class EmergencyIncidentUpdate(SQLModel):
    address: Optional[str] = None
    severity: Optional[Severity] = None
    status: Optional[IncidentStatus] = None
    description: Optional[str] = None
    notified_contacts: Optional[List[str]] = None
    delivered_contacts: Optional[List[str]] = None
    response_time: Optional[int] = None
    resolved_at: Optional[str] = None
    resolved_by: Optional[str] = None

class EmergencyIncidentRead(EmergencyIncidentBase):
    id: uuid.UUID
    notified_contacts: List[str]
    delivered_contacts: List[str]
    created_at: datetime
    updated_at: Optional[datetime]

class EmergencyRequest(SQLModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    emergency_type: EmergencyType = EmergencyType.SOS_BUTTON
    severity: Optional[Severity] = None
    additional_info: Optional[str] = None
    timestamp: Optional[str] = None

class PendingAlert(SQLModel):
    """Local retry queue entry"""
    id: str
    event: EmergencyEvent
    retry_count: int = 0
    created_at: str
