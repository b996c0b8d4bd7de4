from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from datetime import datetime, timezone, timedelta
from typing import Optional, List, Dict, Any
import uuid

from app.models.preferences import UserPreferences, migrate_preferences

class UserAccount(SQLModel, table=True):
    """Auth identity; the profile document hangs off the same id"""
    __tablename__ = "user_accounts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    display_name: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )

class AuthSession(SQLModel, table=True):
    __tablename__ = "auth_sessions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True)
    session_token: str = Field(unique=True, index=True)
    is_active: bool = True
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
    expires_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc) + timedelta(hours=24),
        sa_column=Column(DateTime(timezone=True))
    )

    def is_expired(self) -> bool:
        expires_at = self.expires_at
        # SQLite hands back naive datetimes
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expires_at

class EmergencyContactBase(SQLModel):
    name: str
    phone: str
    email: Optional[str] = None
    relationship: str
    is_primary: bool = False

class EmergencyContact(EmergencyContactBase):
    id: str
    created_at: str

class EmergencyContactCreate(EmergencyContactBase):
    pass

class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profiles"

    uid: str = Field(primary_key=True)
    email: str
    name: str = ""
    phone: Optional[str] = ""
    digital_id: str = Field(index=True)
    created_at: str
    last_login_at: str
    updated_at: Optional[str] = None
    emergency_contacts: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    preferences: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    def contacts(self) -> List[EmergencyContact]:
        return [EmergencyContact.model_validate(c) for c in self.emergency_contacts or []]

class UserProfileRead(SQLModel):
    uid: str
    email: str
    name: str
    phone: Optional[str]
    digital_id: str
    created_at: str
    last_login_at: str
    updated_at: Optional[str]
    emergency_contacts: List[EmergencyContact]
    preferences: UserPreferences

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileRead":
        return cls(
            uid=profile.uid,
            email=profile.email,
            name=profile.name,
            phone=profile.phone,
            digital_id=profile.digital_id,
            created_at=profile.created_at,
            last_login_at=profile.last_login_at,
            updated_at=profile.updated_at,
            emergency_contacts=profile.contacts(),
            preferences=migrate_preferences(profile.preferences),
        )

class UserProfileCreate(SQLModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class UserProfileUpdate(SQLModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    emergency_contacts: Optional[List[EmergencyContact]] = None
    preferences: Optional[Dict[str, Any]] = None
