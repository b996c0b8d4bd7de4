"""
Core modules for Safe Traveler Buddy

This package contains the core business logic:
- geofencing: Haversine distance and coordinate helpers
- store: Persistent store gateway (trips, incidents, alerts, check-ins)
- identity: Accounts, sessions and user profiles
- geocoding: Best-effort reverse geocoding
- local_store: Client-local key-value storage
- incident_ledger: Hash-chained incident log
- emergency_alert: Emergency alert dispatch and retry pipeline

Only dependency-free helpers are re-exported here; app.config imports this
package, so modules that read settings must be imported directly.
"""

from .geofencing import (
    calculate_distance,
    distance_km,
    is_within_radius,
    validate_coordinates,
)

from .exceptions import (
    SafeTravelerError,
    ConfigurationError,
    BackendUnavailableError,
    RecordNotFoundError,
    IdentityError,
)

__all__ = [
    # Geofencing
    "calculate_distance",
    "distance_km",
    "is_within_radius",
    "validate_coordinates",

    # Errors
    "SafeTravelerError",
    "ConfigurationError",
    "BackendUnavailableError",
    "RecordNotFoundError",
    "IdentityError",
]
