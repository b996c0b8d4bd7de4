"""
Versioned user preferences.

Profiles written by older clients hold a flat, camelCase v1 document
(``{"language": "en", "emergencyAlerts": true, "shareLocation": false}``)
or the nested camelCase shape the web client used. Everything is upgraded to
the current nested v2 record before it is read or merged.
"""

from typing import Any, Dict, Optional

from sqlmodel import SQLModel

CURRENT_SCHEMA_VERSION = 2

class NotificationPreferences(SQLModel):
    emergency_alerts: bool = True
    trip_reminders: bool = True
    safety_updates: bool = True

class PrivacyPreferences(SQLModel):
    share_location: bool = True
    public_profile: bool = False

class UserPreferences(SQLModel):
    schema_version: int = CURRENT_SCHEMA_VERSION
    language: str = "en"
    notifications: NotificationPreferences = NotificationPreferences()
    privacy: PrivacyPreferences = PrivacyPreferences()

# v1 key -> (group, v2 field)
_LEGACY_KEYS: Dict[str, tuple[str, str]] = {
    "emergencyAlerts": ("notifications", "emergency_alerts"),
    "tripReminders": ("notifications", "trip_reminders"),
    "safetyUpdates": ("notifications", "safety_updates"),
    "shareLocation": ("privacy", "share_location"),
    "publicProfile": ("privacy", "public_profile"),
}

_GROUP_FIELDS: Dict[str, set[str]] = {
    "notifications": set(NotificationPreferences.model_fields),
    "privacy": set(PrivacyPreferences.model_fields),
}

def _normalize(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Flatten any known shape into {"language": ..., "notifications": {...}, "privacy": {...}}"""
    normalized: Dict[str, Any] = {"notifications": {}, "privacy": {}}
    if not raw:
        return normalized

    for key, value in raw.items():
        if key == "schema_version":
            continue
        if key == "language":
            normalized["language"] = value
        elif key in _LEGACY_KEYS:
            group, field = _LEGACY_KEYS[key]
            normalized[group][field] = value
        elif key in _GROUP_FIELDS and isinstance(value, dict):
            for nested_key, nested_value in value.items():
                if nested_key in _LEGACY_KEYS:
                    _, field = _LEGACY_KEYS[nested_key]
                else:
                    field = nested_key
                if field in _GROUP_FIELDS[key]:
                    normalized[key][field] = nested_value
    return normalized

def migrate_preferences(raw: Optional[Dict[str, Any]]) -> UserPreferences:
    """Upgrade a stored preferences document of any version to the current record"""
    normalized = _normalize(raw)
    preferences = UserPreferences()
    return merge_preferences(preferences, normalized)

def merge_preferences(current: UserPreferences, updates: Optional[Dict[str, Any]]) -> UserPreferences:
    """
    Merge a partial update into an existing record.

    Nested groups are merged field by field, so ``{"privacy": {"public_profile": True}}``
    leaves ``privacy.share_location`` untouched.
    """
    normalized = _normalize(updates)
    data = current.model_dump()

    if "language" in normalized:
        data["language"] = normalized["language"]
    for group in ("notifications", "privacy"):
        data[group] = {**data[group], **normalized[group]}

    data["schema_version"] = CURRENT_SCHEMA_VERSION
    return UserPreferences.model_validate(data)
