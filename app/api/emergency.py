from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
from typing import Any, List
import logging

from app.api.auth import get_bearer_token, get_current_user
from app.core.exceptions import IdentityError
from app.models.emergency import (
    EmergencyEvent, EmergencyIncidentRead, EmergencyRequest, GeoPoint, PendingAlert
)
from app.models.user import UserAccount
from app.services import ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/alert")
async def trigger_emergency_alert(
    emergency_data: EmergencyRequest,
    services: ServicesDep,
    token: str = Depends(get_bearer_token),
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    user_id = str(current_user.id)

    # The alert still goes out if the profile can't be read right now
    digital_id = "UNKNOWN"
    try:
        profile = await services.identity.get_profile(user_id)
        if profile is not None:
            digital_id = profile.digital_id
    except IdentityError as e:
        logger.error(f"Could not read profile for emergency alert: {e}")

    event = EmergencyEvent(
        location=GeoPoint(lat=emergency_data.latitude, lng=emergency_data.longitude),
        timestamp=emergency_data.timestamp or datetime.now(timezone.utc).isoformat(),
        emergency_type=emergency_data.emergency_type,
        user_id=user_id,
        digital_id=digital_id,
        additional_info=emergency_data.additional_info,
        severity=emergency_data.severity
    )

    sent = await services.emergency.send_emergency_alert(event, auth_token=token)
    if sent:
        return {
            "status": "sent",
            "sent": True,
            "message": "Emergency alert sent. Your emergency contacts have been notified."
        }

    queued = any(
        entry.event == event for entry in services.emergency.get_pending_alerts()
    )
    if queued:
        return {
            "status": "queued",
            "sent": False,
            "message": "Alert queued and will be retried. Your contacts were notified where possible."
        }
    return {
        "status": "failed",
        "sent": False,
        "message": "Alert could not be sent. Call local emergency services directly."
    }

@router.post("/retry")
async def retry_pending_alerts(
    services: ServicesDep,
    token: str = Depends(get_bearer_token),
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    # Only the caller's own queued alerts are swept
    result = await services.emergency.retry_pending_alerts(
        user_id=str(current_user.id), auth_token=token
    )
    return {
        "delivered": result.delivered,
        "requeued": result.requeued,
        "dropped": result.dropped
    }

@router.get("/pending", response_model=List[PendingAlert])
async def get_pending_alerts(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    user_id = str(current_user.id)
    return [
        entry for entry in services.emergency.get_pending_alerts()
        if entry.event.user_id == user_id
    ]

@router.get("/incidents", response_model=List[EmergencyIncidentRead])
async def get_incidents(
    services: ServicesDep,
    limit: int = 50,
    current_user: UserAccount = Depends(get_current_user)
):
    return await services.store.get_user_emergency_incidents(str(current_user.id), limit)

@router.get("/incidents/active", response_model=List[EmergencyIncidentRead])
async def get_active_incidents(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    return await services.store.get_active_emergency_incidents(str(current_user.id))

@router.get("/incidents/{incident_id}", response_model=EmergencyIncidentRead)
async def get_incident(
    incident_id: str,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    incident = await services.store.get_emergency_incident(incident_id)
    # Only the owner may see an incident
    if incident is None or incident.user_id != str(current_user.id):
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident
