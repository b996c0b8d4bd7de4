"""
Tests for the persistent store gateway.
"""

import pytest

from app.core.exceptions import BackendUnavailableError, RecordNotFoundError
from app.core.store import StoreGateway
from app.models.alert import AlertSeverity, SafetyAlertCreate, SafetyAlertUpdate
from app.models.emergency import (
    EmergencyIncidentCreate, EmergencyIncidentUpdate, EmergencyType, IncidentStatus, Severity
)
from app.models.trip import CheckInCreate, CheckInStatus, TripCreate, TripStatus, TripUpdate

from conftest import broken_session_factory

def make_trip(user_id="user-1", name="Goa", status=TripStatus.PLANNED, start="2024-03-01"):
    return TripCreate(
        user_id=user_id,
        name=name,
        start_date=start,
        end_date="2024-03-10",
        status=status,
    )

def make_incident(user_id="user-1", status=IncidentStatus.ACTIVE):
    return EmergencyIncidentCreate(
        user_id=user_id,
        digital_id="TST1",
        latitude=19.076,
        longitude=72.8777,
        timestamp="2024-03-01T10:15:00+00:00",
        type=EmergencyType.SOS_BUTTON,
        status=status,
    )

def make_alert(title, severity=AlertSeverity.INFO, latitude=None, longitude=None, is_active=True):
    return SafetyAlertCreate(
        title=title,
        message=f"{title} message",
        severity=severity,
        latitude=latitude,
        longitude=longitude,
        valid_from="2024-03-01T00:00:00+00:00",
        source="test",
        is_active=is_active,
    )

class TestTrips:
    """Test trip CRUD and queries."""

    async def test_create_and_get(self, store):
        trip_id = await store.create_trip(make_trip())

        trip = await store.get_trip(trip_id)

        assert trip is not None
        assert trip.name == "Goa"
        assert trip.status == TripStatus.PLANNED

    async def test_get_unknown_trip(self, store):
        assert await store.get_trip("not-a-uuid") is None
        assert await store.get_trip("00000000-0000-0000-0000-000000000000") is None

    async def test_update_stamps_updated_at(self, store):
        trip_id = await store.create_trip(make_trip())

        trip = await store.update_trip(trip_id, TripUpdate(status=TripStatus.ACTIVE))

        assert trip.status == TripStatus.ACTIVE
        assert trip.updated_at is not None
        assert trip.name == "Goa"

    async def test_update_unknown_trip(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.update_trip("00000000-0000-0000-0000-000000000000", TripUpdate(name="x"))

    async def test_delete(self, store):
        trip_id = await store.create_trip(make_trip())

        assert await store.delete_trip(trip_id) is True
        assert await store.get_trip(trip_id) is None
        assert await store.delete_trip(trip_id) is False

    async def test_user_and_active_trips(self, store):
        await store.create_trip(make_trip(name="Later", status=TripStatus.ACTIVE, start="2024-05-01"))
        await store.create_trip(make_trip(name="Sooner", status=TripStatus.ACTIVE, start="2024-04-01"))
        await store.create_trip(make_trip(name="Done", status=TripStatus.COMPLETED))
        await store.create_trip(make_trip(user_id="someone-else"))

        user_trips = await store.get_user_trips("user-1")
        active = await store.get_active_trips("user-1")

        assert len(user_trips) == 3
        assert [t.name for t in active] == ["Sooner", "Later"]

class TestEmergencyIncidents:
    """Test incident persistence."""

    async def test_create_defaults(self, store):
        incident_id = await store.create_emergency_incident(make_incident())

        incident = await store.get_emergency_incident(incident_id)

        assert incident.status == IncidentStatus.ACTIVE
        assert incident.severity == Severity.HIGH
        assert incident.notified_contacts == []
        assert incident.location.lat == 19.076

    async def test_update_contacts(self, store):
        incident_id = await store.create_emergency_incident(make_incident())

        incident = await store.update_emergency_incident(
            incident_id,
            EmergencyIncidentUpdate(notified_contacts=["a", "b"], delivered_contacts=["a"])
        )

        assert incident.notified_contacts == ["a", "b"]
        assert incident.delivered_contacts == ["a"]

    async def test_active_incidents(self, store):
        await store.create_emergency_incident(make_incident())
        await store.create_emergency_incident(make_incident(status=IncidentStatus.RESOLVED))

        assert len(await store.get_user_emergency_incidents("user-1")) == 2
        assert len(await store.get_active_emergency_incidents("user-1")) == 1

class TestSafetyAlerts:
    """Test alert feeds."""

    async def test_ordered_by_severity(self, store):
        await store.create_safety_alert(make_alert("info", AlertSeverity.INFO))
        await store.create_safety_alert(make_alert("critical", AlertSeverity.CRITICAL))
        await store.create_safety_alert(make_alert("warning", AlertSeverity.WARNING))
        await store.create_safety_alert(make_alert("inactive", AlertSeverity.CRITICAL, is_active=False))

        alerts = await store.get_safety_alerts()

        assert [a.title for a in alerts] == ["critical", "warning", "info"]

    async def test_by_location(self, store):
        await store.create_safety_alert(make_alert("near", latitude=19.08, longitude=72.88))
        await store.create_safety_alert(make_alert("far", latitude=28.61, longitude=77.20))
        await store.create_safety_alert(make_alert("everywhere"))

        alerts = await store.get_safety_alerts_by_location(19.076, 72.8777, radius_km=50)

        assert {a.title for a in alerts} == {"near", "everywhere"}

    async def test_bad_stored_location_is_skipped(self, store):
        # Written before the bounds were enforced
        bad = make_alert("bad").model_copy(update={"latitude": 500, "longitude": 72.88})
        await store.create_safety_alert(bad)
        await store.create_safety_alert(make_alert("near", latitude=19.08, longitude=72.88))

        alerts = await store.get_safety_alerts_by_location(19.076, 72.8777, radius_km=50000)

        assert [a.title for a in alerts] == ["near"]

    async def test_update_and_batch(self, store):
        ids = await store.batch_create_alerts([make_alert("one"), make_alert("two")])
        assert len(ids) == 2

        alert = await store.update_safety_alert(ids[0], SafetyAlertUpdate(is_active=False))

        assert alert.is_active is False
        assert [a.title for a in await store.get_safety_alerts()] == ["two"]

class TestCheckIns:
    """Test check-ins and stats."""

    async def test_trip_check_ins_in_time_order(self, store):
        trip_id = await store.create_trip(make_trip(status=TripStatus.ACTIVE))
        for timestamp in ("2024-03-01T12:00:00", "2024-03-01T09:00:00"):
            await store.create_check_in(CheckInCreate(
                user_id="user-1", trip_id=trip_id, latitude=15.5, longitude=73.8, timestamp=timestamp
            ))

        check_ins = await store.get_trip_check_ins(trip_id)

        assert [c.timestamp for c in check_ins] == ["2024-03-01T09:00:00", "2024-03-01T12:00:00"]

    async def test_user_stats(self, store):
        await store.create_trip(make_trip(status=TripStatus.ACTIVE))
        await store.create_trip(make_trip(status=TripStatus.COMPLETED))
        await store.create_emergency_incident(make_incident())
        await store.create_check_in(CheckInCreate(
            user_id="user-1", latitude=15.5, longitude=73.8, timestamp="2024-03-01T09:00:00"
        ))
        await store.create_check_in(CheckInCreate(
            user_id="user-1", latitude=15.5, longitude=73.8, timestamp="2024-03-01T10:00:00",
            status=CheckInStatus.DELAYED
        ))

        stats = await store.get_user_stats("user-1")

        assert stats["total_trips"] == 2
        assert stats["active_trips"] == 1
        assert stats["completed_trips"] == 1
        assert stats["total_incidents"] == 1
        assert stats["active_incidents"] == 1
        assert stats["total_check_ins"] == 2
        assert stats["safe_check_ins"] == 1
        assert stats["last_check_in"] is not None

class TestBackendFailures:
    """Test error mapping when the database is unreachable."""

    async def test_backend_unavailable(self):
        store = StoreGateway(broken_session_factory)

        with pytest.raises(BackendUnavailableError):
            await store.create_trip(make_trip())
        with pytest.raises(BackendUnavailableError):
            await store.get_user_trips("user-1")
