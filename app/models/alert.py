from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum
import uuid

class AlertType(str, Enum):
    WEATHER = "weather"
    CRIME = "crime"
    HEALTH = "health"
    TRAFFIC = "traffic"
    SECURITY = "security"
    GENERAL = "general"

class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"

# Higher rank sorts first in alert feeds
ALERT_SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.INFO: 1,
    AlertSeverity.WARNING: 2,
    AlertSeverity.DANGER: 3,
    AlertSeverity.CRITICAL: 4,
}

class SafetyAlertBase(SQLModel):
    type: AlertType = AlertType.GENERAL
    severity: AlertSeverity = AlertSeverity.INFO
    title: str
    message: str
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: Optional[float] = Field(default=None, ge=0)  # meters
    valid_from: str
    valid_until: Optional[str] = None
    source: str
    is_active: bool = True

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

class SafetyAlert(SafetyAlertBase, table=True):
    __tablename__ = "safety_alerts"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    affected_areas: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True))
    )

class SafetyAlertCreate(SafetyAlertBase):
    affected_areas: List[str] = []

class SafetyAlertUpdate(SQLModel):
    type: Optional[AlertType] = None
    severity: Optional[AlertSeverity] = None
    title: Optional[str] = None
    message: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: Optional[float] = Field(default=None, ge=0)
    affected_areas: Optional[List[str]] = None
    valid_until: Optional[str] = None
    is_active: Optional[bool] = None

class SafetyAlertRead(SafetyAlertBase):
    id: uuid.UUID
    affected_areas: List[str]
    created_at: datetime
    updated_at: Optional[datetime]
