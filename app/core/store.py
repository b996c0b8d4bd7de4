"""
Persistent store gateway.

Thin CRUD/query layer over the trips, emergency incident, safety alert and
check-in collections. Every call opens its own session. Database failures
surface as ``BackendUnavailableError``; nothing is retried here, the caller
decides what to do about it.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select, desc, asc

from app.core.exceptions import BackendUnavailableError, RecordNotFoundError
from app.core.geofencing import calculate_distance, validate_coordinates
from app.models.alert import (
    ALERT_SEVERITY_RANK, SafetyAlert, SafetyAlertCreate, SafetyAlertUpdate
)
from app.models.emergency import (
    EmergencyIncident, EmergencyIncidentCreate, EmergencyIncidentUpdate, IncidentStatus
)
from app.models.trip import (
    CheckIn, CheckInCreate, CheckInStatus, Trip, TripCreate, TripStatus, TripUpdate
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=SQLModel)

# Alerts fetched before the client-side radius filter
LOCATION_QUERY_WINDOW = 100

def _parse_id(record_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(record_id))
    except ValueError:
        return None

class StoreGateway:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error {action}: {e}")
            raise BackendUnavailableError(f"Backend unavailable while {action}") from e

    async def _create(self, model: Type[RecordT], data: SQLModel, action: str) -> str:
        record = model(**data.model_dump())
        async with self._session(action) as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
        return str(record.id)

    async def _update(
        self,
        model: Type[RecordT],
        collection: str,
        record_id: str,
        updates: SQLModel,
        action: str
    ) -> RecordT:
        parsed_id = _parse_id(record_id)
        async with self._session(action) as session:
            record = await session.get(model, parsed_id) if parsed_id else None
            if record is None:
                raise RecordNotFoundError(collection, record_id)

            for field, value in updates.model_dump(exclude_unset=True).items():
                setattr(record, field, value)
            record.updated_at = datetime.now(timezone.utc)

            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

    async def _get(self, model: Type[RecordT], record_id: str, action: str) -> Optional[RecordT]:
        parsed_id = _parse_id(record_id)
        if parsed_id is None:
            return None
        async with self._session(action) as session:
            return await session.get(model, parsed_id)

    async def _all(self, statement, action: str) -> List[Any]:
        async with self._session(action) as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    # Trip Management
    async def create_trip(self, trip_data: TripCreate) -> str:
        return await self._create(Trip, trip_data, "creating trip")

    async def update_trip(self, trip_id: str, updates: TripUpdate) -> Trip:
        return await self._update(Trip, "trips", trip_id, updates, "updating trip")

    async def delete_trip(self, trip_id: str) -> bool:
        parsed_id = _parse_id(trip_id)
        if parsed_id is None:
            return False
        async with self._session("deleting trip") as session:
            trip = await session.get(Trip, parsed_id)
            if trip is None:
                return False
            await session.delete(trip)
            await session.commit()
            return True

    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        return await self._get(Trip, trip_id, "getting trip")

    async def get_user_trips(self, user_id: str) -> List[Trip]:
        return await self._all(
            select(Trip)
            .where(Trip.user_id == user_id)
            .order_by(desc(Trip.created_at)),
            "getting user trips"
        )

    async def get_active_trips(self, user_id: str) -> List[Trip]:
        return await self._all(
            select(Trip)
            .where(Trip.user_id == user_id, Trip.status == TripStatus.ACTIVE)
            .order_by(asc(Trip.start_date)),
            "getting active trips"
        )

    # Emergency Incidents
    async def create_emergency_incident(self, incident_data: EmergencyIncidentCreate) -> str:
        return await self._create(EmergencyIncident, incident_data, "creating emergency incident")

    async def update_emergency_incident(
        self, incident_id: str, updates: EmergencyIncidentUpdate
    ) -> EmergencyIncident:
        return await self._update(
            EmergencyIncident, "emergency_incidents", incident_id, updates,
            "updating emergency incident"
        )

    async def get_emergency_incident(self, incident_id: str) -> Optional[EmergencyIncident]:
        return await self._get(EmergencyIncident, incident_id, "getting emergency incident")

    async def get_user_emergency_incidents(
        self, user_id: str, limit: int = 50
    ) -> List[EmergencyIncident]:
        return await self._all(
            select(EmergencyIncident)
            .where(EmergencyIncident.user_id == user_id)
            .order_by(desc(EmergencyIncident.created_at))
            .limit(limit),
            "getting emergency incidents"
        )

    async def get_active_emergency_incidents(self, user_id: str) -> List[EmergencyIncident]:
        return await self._all(
            select(EmergencyIncident)
            .where(
                EmergencyIncident.user_id == user_id,
                EmergencyIncident.status == IncidentStatus.ACTIVE
            )
            .order_by(desc(EmergencyIncident.created_at)),
            "getting active emergency incidents"
        )

    # Safety Alerts
    async def create_safety_alert(self, alert_data: SafetyAlertCreate) -> str:
        return await self._create(SafetyAlert, alert_data, "creating safety alert")

    async def update_safety_alert(self, alert_id: str, updates: SafetyAlertUpdate) -> SafetyAlert:
        return await self._update(
            SafetyAlert, "safety_alerts", alert_id, updates, "updating safety alert"
        )

    async def get_safety_alert(self, alert_id: str) -> Optional[SafetyAlert]:
        return await self._get(SafetyAlert, alert_id, "getting safety alert")

    async def get_safety_alerts(self, limit: int = 50) -> List[SafetyAlert]:
        severity_rank = case(
            *[
                (SafetyAlert.severity == severity, rank)
                for severity, rank in ALERT_SEVERITY_RANK.items()
            ],
            else_=0
        )
        return await self._all(
            select(SafetyAlert)
            .where(SafetyAlert.is_active == True)  # noqa: E712
            .order_by(desc(severity_rank), desc(SafetyAlert.created_at))
            .limit(limit),
            "getting safety alerts"
        )

    async def get_safety_alerts_by_location(
        self, lat: float, lng: float, radius_km: float = 50
    ) -> List[SafetyAlert]:
        # Not a geospatial query: fetch a recent window and filter client-side
        alerts = await self._all(
            select(SafetyAlert)
            .where(SafetyAlert.is_active == True)  # noqa: E712
            .order_by(desc(SafetyAlert.created_at))
            .limit(LOCATION_QUERY_WINDOW),
            "getting safety alerts by location"
        )

        nearby = []
        for alert in alerts:
            if not alert.has_location:
                nearby.append(alert)
                continue
            errors = validate_coordinates(alert.latitude, alert.longitude)
            if errors:
                logger.warning(f"Skipping safety alert {alert.id} with bad location: {errors}")
                continue
            if calculate_distance(lat, lng, alert.latitude, alert.longitude) <= radius_km:
                nearby.append(alert)
        return nearby

    async def batch_create_alerts(self, alerts: List[SafetyAlertCreate]) -> List[str]:
        return [await self.create_safety_alert(alert) for alert in alerts]

    # Check-ins
    async def create_check_in(self, check_in_data: CheckInCreate) -> str:
        return await self._create(CheckIn, check_in_data, "creating check-in")

    async def get_user_check_ins(self, user_id: str, limit: int = 50) -> List[CheckIn]:
        return await self._all(
            select(CheckIn)
            .where(CheckIn.user_id == user_id)
            .order_by(desc(CheckIn.created_at))
            .limit(limit),
            "getting user check-ins"
        )

    async def get_trip_check_ins(self, trip_id: str) -> List[CheckIn]:
        return await self._all(
            select(CheckIn)
            .where(CheckIn.trip_id == trip_id)
            .order_by(asc(CheckIn.timestamp)),
            "getting trip check-ins"
        )

    # Analytics & Stats
    async def get_user_stats(self, user_id: str) -> Dict[str, Any]:
        trips = await self.get_user_trips(user_id)
        incidents = await self.get_user_emergency_incidents(user_id)
        check_ins = await self.get_user_check_ins(user_id)

        return {
            "total_trips": len(trips),
            "active_trips": sum(1 for t in trips if t.status == TripStatus.ACTIVE),
            "completed_trips": sum(1 for t in trips if t.status == TripStatus.COMPLETED),
            "total_incidents": len(incidents),
            "active_incidents": sum(1 for i in incidents if i.status == IncidentStatus.ACTIVE),
            "total_check_ins": len(check_ins),
            "safe_check_ins": sum(1 for c in check_ins if c.status == CheckInStatus.SAFE),
            "last_check_in": check_ins[0] if check_ins else None,
        }
