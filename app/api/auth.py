from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import EmailStr
from sqlmodel import SQLModel
from typing import Any, Optional

from app.core.exceptions import IdentityError
from app.models.user import UserAccount, UserProfileCreate, UserProfileRead
from app.services import ServicesDep

router = APIRouter()
security = HTTPBearer(auto_error=False)

# Identity error code -> HTTP status
IDENTITY_ERROR_STATUS: dict[str, int] = {
    "auth/email-already-in-use": status.HTTP_409_CONFLICT,
    "auth/weak-password": status.HTTP_400_BAD_REQUEST,
    "auth/user-not-found": status.HTTP_401_UNAUTHORIZED,
    "auth/wrong-password": status.HTTP_401_UNAUTHORIZED,
    "auth/invalid-session": status.HTTP_401_UNAUTHORIZED,
    "auth/profile-not-found": status.HTTP_404_NOT_FOUND,
    "auth/network-request-failed": status.HTTP_503_SERVICE_UNAVAILABLE,
}

def identity_http_error(error: IdentityError) -> HTTPException:
    status_code = IDENTITY_ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": str(error)},
        headers=headers
    )

async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    # No Authorization header
    if credentials is None:
        raise identity_http_error(IdentityError("auth/invalid-session"))
    return credentials.credentials

async def get_current_user(
    services: ServicesDep,
    token: str = Depends(get_bearer_token)
) -> UserAccount:
    try:
        return await services.identity.get_current_user(token)
    except IdentityError as e:
        raise identity_http_error(e)

class SignUpRequest(UserProfileCreate):
    email: EmailStr
    password: str

class SignInRequest(SQLModel):
    email: EmailStr
    password: str

class TokenResponse(SQLModel):
    user_id: str
    access_token: str
    token_type: str = "bearer"
    profile: Optional[UserProfileRead] = None

@router.post("/sign-up", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(request: SignUpRequest, services: ServicesDep):
    try:
        _, profile = await services.identity.sign_up(
            request.email,
            request.password,
            UserProfileCreate(name=request.name, phone=request.phone)
        )
        result = await services.identity.sign_in(request.email, request.password)
    except IdentityError as e:
        raise identity_http_error(e)

    return TokenResponse(
        user_id=result.user_id,
        access_token=result.access_token,
        token_type=result.token_type,
        profile=UserProfileRead.from_profile(profile)
    )

@router.post("/sign-in", response_model=TokenResponse)
async def sign_in(request: SignInRequest, services: ServicesDep):
    try:
        result = await services.identity.sign_in(request.email, request.password)
    except IdentityError as e:
        raise identity_http_error(e)

    return TokenResponse(
        user_id=result.user_id,
        access_token=result.access_token,
        token_type=result.token_type
    )

@router.post("/sign-out")
async def sign_out(
    services: ServicesDep,
    token: str = Depends(get_bearer_token)
) -> dict[str, Any]:
    try:
        await services.identity.sign_out(token)
    except IdentityError as e:
        raise identity_http_error(e)

    return {"message": "Signed out successfully"}

@router.get("/me", response_model=UserProfileRead)
async def get_current_user_profile(
    services: ServicesDep,
    current_user: UserAccount = Depends(get_current_user)
):
    try:
        profile = await services.identity.get_profile(str(current_user.id))
    except IdentityError as e:
        raise identity_http_error(e)

    if profile is None:
        raise identity_http_error(IdentityError("auth/profile-not-found"))
    return UserProfileRead.from_profile(profile)
