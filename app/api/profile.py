from fastapi import APIRouter, Depends, status
from typing import Any, Dict, List

from app.api.auth import get_current_user, identity_http_error
from app.core.exceptions import IdentityError
from app.models.preferences import UserPreferences
from app.models.user import (
    EmergencyContact, EmergencyContactCreate, UserAccount, UserProfileRead, UserProfileUpdate
)
from app.services import ServicesDep

router = APIRouter()

@router.patch("", response_model=UserProfileRead)
async def update_profile(
    updates: UserProfileUpdate,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    try:
        profile = await services.identity.update_profile(str(current_user.id), updates)
    except IdentityError as e:
        raise identity_http_error(e)
    return UserProfileRead.from_profile(profile)

@router.put("/preferences", response_model=UserPreferences)
async def update_preferences(
    preferences: Dict[str, Any],
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    try:
        return await services.identity.update_preferences(str(current_user.id), preferences)
    except IdentityError as e:
        raise identity_http_error(e)

@router.get("/contacts", response_model=List[EmergencyContact])
async def list_emergency_contacts(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    try:
        return await services.emergency.get_emergency_contacts(str(current_user.id))
    except IdentityError as e:
        raise identity_http_error(e)

@router.post("/contacts", response_model=EmergencyContact, status_code=status.HTTP_201_CREATED)
async def add_emergency_contact(
    contact: EmergencyContactCreate,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    try:
        return await services.emergency.add_emergency_contact(str(current_user.id), contact)
    except IdentityError as e:
        raise identity_http_error(e)

@router.delete("/contacts/{contact_id}")
async def remove_emergency_contact(
    contact_id: str,
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
) -> dict[str, str]:
    try:
        await services.identity.remove_emergency_contact(str(current_user.id), contact_id)
    except IdentityError as e:
        raise identity_http_error(e)
    return {"message": "Emergency contact removed"}
