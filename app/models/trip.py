from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from enum import Enum
import uuid

from app.models.emergency import GeoPoint

class TripStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    PLANNED = "planned"

class TripDestination(SQLModel):
    id: str
    name: str
    address: str
    coordinates: GeoPoint
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None
    notes: Optional[str] = None
    is_completed: bool = False

class TripBase(SQLModel):
    user_id: str = Field(index=True)
    name: str
    description: Optional[str] = None
    start_date: str
    end_date: str
    status: TripStatus = TripStatus.PLANNED
    current_destination: Optional[int] = None
    safety_check_interval: Optional[int] = None  # minutes

class Trip(TripBase, table=True):
    __tablename__ = "trips"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    destinations: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    emergency_contacts: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True))
    )

class TripCreate(TripBase):
    destinations: List[TripDestination] = []
    emergency_contacts: List[str] = []

class TripUpdate(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Optional[TripStatus] = None
    destinations: Optional[List[TripDestination]] = None
    current_destination: Optional[int] = None
    safety_check_interval: Optional[int] = None
    emergency_contacts: Optional[List[str]] = None

class TripRead(TripBase):
    id: uuid.UUID
    destinations: List[TripDestination]
    emergency_contacts: List[str]
    created_at: datetime
    updated_at: Optional[datetime]

class CheckInType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    SCHEDULED = "scheduled"

class CheckInStatus(str, Enum):
    SAFE = "safe"
    EMERGENCY = "emergency"
    DELAYED = "delayed"

class CheckInBase(SQLModel):
    user_id: str = Field(index=True)
    trip_id: Optional[str] = Field(default=None, index=True)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: Optional[str] = None
    timestamp: str
    type: CheckInType = CheckInType.MANUAL
    status: CheckInStatus = CheckInStatus.SAFE
    message: Optional[str] = None

class CheckIn(CheckInBase, table=True):
    __tablename__ = "check_ins"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True))
    )

class CheckInCreate(CheckInBase):
    pass

class CheckInRead(CheckInBase):
    id: uuid.UUID
    created_at: datetime
