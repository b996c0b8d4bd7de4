from fastapi import APIRouter, Depends, HTTPException, status
from typing import Any, List

from app.api.auth import get_current_user
from app.models.trip import (
    CheckInCreate, CheckInRead, Trip, TripCreate, TripRead, TripUpdate
)
from app.models.user import UserAccount
from app.services import Services, ServicesDep

router = APIRouter()
check_in_router = APIRouter()

class TripCreateRequest(TripCreate):
    user_id: str = ""

class CheckInRequest(CheckInCreate):
    user_id: str = ""

async def _get_owned_trip(services: Services, trip_id: str, user_id: str) -> Trip:
    trip = await services.store.get_trip(trip_id)
    if trip is None or trip.user_id != user_id:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreateRequest,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    trip_data.user_id = str(current_user.id)
    trip_id = await services.store.create_trip(TripCreate.model_validate(trip_data.model_dump()))
    return {"id": trip_id}

@router.get("", response_model=List[TripRead])
async def get_user_trips(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    return await services.store.get_user_trips(str(current_user.id))

@router.get("/active", response_model=List[TripRead])
async def get_active_trips(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    return await services.store.get_active_trips(str(current_user.id))

@router.get("/stats")
async def get_user_stats(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    stats = await services.store.get_user_stats(str(current_user.id))
    last_check_in = stats["last_check_in"]
    stats["last_check_in"] = CheckInRead.model_validate(last_check_in) if last_check_in else None
    return stats

@router.get("/{trip_id}", response_model=TripRead)
async def get_trip(
    trip_id: str,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    return await _get_owned_trip(services, trip_id, str(current_user.id))

@router.patch("/{trip_id}", response_model=TripRead)
async def update_trip(
    trip_id: str,
    updates: TripUpdate,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    await _get_owned_trip(services, trip_id, str(current_user.id))
    return await services.store.update_trip(trip_id, updates)

@router.delete("/{trip_id}")
async def delete_trip(
    trip_id: str,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, str]:
    await _get_owned_trip(services, trip_id, str(current_user.id))
    await services.store.delete_trip(trip_id)
    return {"message": "Trip deleted"}

@router.get("/{trip_id}/check-ins", response_model=List[CheckInRead])
async def get_trip_check_ins(
    trip_id: str,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    await _get_owned_trip(services, trip_id, str(current_user.id))
    return await services.store.get_trip_check_ins(trip_id)

@check_in_router.post("", status_code=status.HTTP_201_CREATED)
async def create_check_in(
    check_in_data: CheckInRequest,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, Any]:
    user_id = str(current_user.id)
    if check_in_data.trip_id:
        await _get_owned_trip(services, check_in_data.trip_id, user_id)

    check_in_data.user_id = user_id
    check_in_id = await services.store.create_check_in(
        CheckInCreate.model_validate(check_in_data.model_dump())
    )
    return {"id": check_in_id}

@check_in_router.get("", response_model=List[CheckInRead])
async def get_user_check_ins(
    services: ServicesDep,
    limit: int = 50,
    current_user: UserAccount = Depends(get_current_user)
):
    return await services.store.get_user_check_ins(str(current_user.id), limit)
