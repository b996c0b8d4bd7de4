from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import Any, List

from app.api.auth import get_current_user
from app.models.alert import SafetyAlertCreate, SafetyAlertRead, SafetyAlertUpdate
from app.models.user import UserAccount
from app.services import ServicesDep

router = APIRouter()

async def _broadcast_alert(request: Request, alert: SafetyAlertRead) -> None:
    websocket_manager = request.app.state.websocket_manager
    await websocket_manager.broadcast({
        "type": "safety_alert",
        "data": alert.model_dump(mode="json")
    })

@router.get("", response_model=List[SafetyAlertRead])
async def get_safety_alerts(
    services: ServicesDep,
    limit: int = Query(50, ge=1, le=200)
):
    return await services.store.get_safety_alerts(limit)

@router.get("/nearby", response_model=List[SafetyAlertRead])
async def get_nearby_alerts(
    services: ServicesDep,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(50, gt=0)
):
    return await services.store.get_safety_alerts_by_location(lat, lng, radius_km)

@router.get("/{alert_id}", response_model=SafetyAlertRead)
async def get_safety_alert(alert_id: str, services: ServicesDep):
    alert = await services.store.get_safety_alert(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert

@router.post("", response_model=SafetyAlertRead, status_code=status.HTTP_201_CREATED)
async def create_safety_alert(
    alert_data: SafetyAlertCreate,
    request: Request,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    alert_id = await services.store.create_safety_alert(alert_data)
    alert = SafetyAlertRead.model_validate(await services.store.get_safety_alert(alert_id))

    # Push to connected clients
    await _broadcast_alert(request, alert)
    return alert

@router.post("/batch", status_code=status.HTTP_201_CREATED)
async def batch_create_alerts(
    alerts: List[SafetyAlertCreate],
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    alert_ids = await services.store.batch_create_alerts(alerts)
    return {"ids": alert_ids, "count": len(alert_ids)}

@router.patch("/{alert_id}", response_model=SafetyAlertRead)
async def update_safety_alert(
    alert_id: str,
    updates: SafetyAlertUpdate,
    request: Request,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    alert = SafetyAlertRead.model_validate(
        await services.store.update_safety_alert(alert_id, updates)
    )
    await _broadcast_alert(request, alert)
    return alert
