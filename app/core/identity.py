"""
Identity gateway.

Accounts, bearer sessions and the profile document that carries a user's
digital ID, emergency contacts and preferences. Failures surface as
``IdentityError`` with a provider-style code (``auth/wrong-password`` and so
on) that the API layer maps to a user-facing message.
"""

import logging
import secrets
import string
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import AsyncIterator, Callable, List, Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.config import Settings
from app.core.exceptions import IdentityError
from app.models.preferences import UserPreferences, merge_preferences, migrate_preferences
from app.models.user import (
    AuthSession, EmergencyContact, EmergencyContactCreate, UserAccount,
    UserProfile, UserProfileCreate, UserProfileUpdate
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

BASE36_ALPHABET = string.digits + string.ascii_lowercase

AuthStateListener = Callable[[Optional[str]], None]

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)

def generate_digital_id(prefix: str) -> str:
    """PREFIX + epoch millis + 4 random base-36 chars, uppercased"""
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"{prefix}{int(time.time() * 1000)}{suffix}".upper()

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

@dataclass
class SignInResult:
    user_id: str
    access_token: str
    token_type: str = "bearer"

class IdentityGateway:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], config: Settings):
        self.session_factory = session_factory
        self.config = config
        self._listeners: List[AuthStateListener] = []

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error {action}: {e}")
            raise IdentityError("auth/network-request-failed") from e

    # Auth state
    def on_auth_state_changed(self, callback: AuthStateListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it"""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit_auth_state(self, user_id: Optional[str]):
        for listener in list(self._listeners):
            try:
                listener(user_id)
            except Exception as e:
                logger.error(f"Auth state listener failed: {e}")

    # Sign up / sign in / sign out
    async def sign_up(
        self,
        email: str,
        password: str,
        profile_data: Optional[UserProfileCreate] = None
    ) -> Tuple[UserAccount, UserProfile]:
        logger.info(f"Sign-up requested for {email}")
        if len(password) < self.config.MIN_PASSWORD_LENGTH:
            raise IdentityError("auth/weak-password")

        profile_data = profile_data or UserProfileCreate()
        email = email.strip().lower()

        try:
            async with self._session("signing up") as session:
                existing = await session.execute(
                    select(UserAccount).where(UserAccount.email == email)
                )
                if existing.scalar_one_or_none() is not None:
                    raise IdentityError("auth/email-already-in-use")

                account = UserAccount(
                    email=email,
                    password_hash=hash_password(password),
                    display_name=profile_data.name
                )
                now = _now_iso()
                profile = UserProfile(
                    uid=str(account.id),
                    email=email,
                    name=profile_data.name or "",
                    phone=profile_data.phone or "",
                    digital_id=generate_digital_id(self.config.DIGITAL_ID_PREFIX),
                    created_at=now,
                    last_login_at=now,
                    emergency_contacts=[],
                    preferences=UserPreferences().model_dump()
                )

                session.add(account)
                session.add(profile)
                await session.commit()
                await session.refresh(account)
                await session.refresh(profile)
        except IdentityError as e:
            if isinstance(e.__cause__, IntegrityError):
                # Lost a race with a concurrent sign-up for the same email
                raise IdentityError("auth/email-already-in-use") from e
            raise

        logger.info(f"User created: {account.id}")
        return account, profile

    async def sign_in(self, email: str, password: str) -> SignInResult:
        email = email.strip().lower()

        async with self._session("signing in") as session:
            result = await session.execute(
                select(UserAccount).where(UserAccount.email == email)
            )
            account = result.scalar_one_or_none()
            if account is None:
                raise IdentityError("auth/user-not-found")
            if not verify_password(password, account.password_hash):
                raise IdentityError("auth/wrong-password")

            user_id = str(account.id)
            expires_delta = timedelta(minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES)
            auth_session = AuthSession(
                user_id=user_id,
                session_token=secrets.token_urlsafe(32),
                expires_at=datetime.now(timezone.utc) + expires_delta
            )
            session.add(auth_session)

            profile = await session.get(UserProfile, user_id)
            if profile is not None:
                profile.last_login_at = _now_iso()
                session.add(profile)

            await session.commit()

        access_token = self._create_access_token(
            {"sub": user_id, "session_token": auth_session.session_token},
            expires_delta
        )
        logger.info(f"User signed in: {user_id}")
        self._emit_auth_state(user_id)
        return SignInResult(user_id=user_id, access_token=access_token)

    async def sign_out(self, token: str) -> None:
        session_token = self._decode_session_token(token)

        async with self._session("signing out") as session:
            auth_session = await self._find_session(session, session_token)
            if auth_session is None:
                raise IdentityError("auth/invalid-session")
            auth_session.is_active = False
            session.add(auth_session)
            await session.commit()

        logger.info(f"User signed out: {auth_session.user_id}")
        self._emit_auth_state(None)

    # Current user
    async def get_current_user(self, token: str) -> UserAccount:
        session_token = self._decode_session_token(token)

        async with self._session("resolving current user") as session:
            auth_session = await self._find_session(session, session_token)
            if auth_session is None or not auth_session.is_active or auth_session.is_expired():
                raise IdentityError("auth/invalid-session")

            account = await session.get(UserAccount, uuid.UUID(auth_session.user_id))
            if account is None:
                raise IdentityError("auth/user-not-found")
            return account

    async def is_authenticated(self, token: Optional[str]) -> bool:
        if not token:
            return False
        try:
            await self.get_current_user(token)
        except IdentityError:
            return False
        return True

    # Profile
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        async with self._session("getting user profile") as session:
            return await session.get(UserProfile, user_id)

    async def get_current_profile(self, token: str) -> Optional[UserProfile]:
        account = await self.get_current_user(token)
        return await self.get_profile(str(account.id))

    async def update_profile(self, user_id: str, updates: UserProfileUpdate) -> UserProfile:
        changes = updates.model_dump(exclude_unset=True)

        async with self._session("updating user profile") as session:
            profile = await self._load_profile(session, user_id)

            if "name" in changes:
                profile.name = changes["name"] or ""
            if "phone" in changes:
                profile.phone = changes["phone"]
            if "emergency_contacts" in changes:
                profile.emergency_contacts = changes["emergency_contacts"] or []
            if "preferences" in changes:
                current = migrate_preferences(profile.preferences)
                profile.preferences = merge_preferences(current, changes["preferences"]).model_dump()
            profile.updated_at = _now_iso()

            session.add(profile)
            await session.commit()
            await session.refresh(profile)
            return profile

    async def update_preferences(self, user_id: str, preferences: dict) -> UserPreferences:
        profile = await self.update_profile(user_id, UserProfileUpdate(preferences=preferences))
        return migrate_preferences(profile.preferences)

    async def add_emergency_contact(
        self, user_id: str, contact_data: EmergencyContactCreate
    ) -> EmergencyContact:
        contact = EmergencyContact(
            **contact_data.model_dump(),
            id=f"contact_{uuid.uuid4().hex[:12]}",
            created_at=_now_iso()
        )

        async with self._session("adding emergency contact") as session:
            profile = await self._load_profile(session, user_id)
            profile.emergency_contacts = [*(profile.emergency_contacts or []), contact.model_dump()]
            profile.updated_at = _now_iso()
            session.add(profile)
            await session.commit()

        return contact

    async def remove_emergency_contact(self, user_id: str, contact_id: str) -> None:
        async with self._session("removing emergency contact") as session:
            profile = await self._load_profile(session, user_id)
            profile.emergency_contacts = [
                contact for contact in profile.emergency_contacts or []
                if contact.get("id") != contact_id
            ]
            profile.updated_at = _now_iso()
            session.add(profile)
            await session.commit()

    # Helpers
    def _create_access_token(self, data: dict, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
        return jwt.encode(to_encode, self.config.SECRET_KEY, algorithm=self.config.ALGORITHM)

    def _decode_session_token(self, token: str) -> str:
        try:
            payload = jwt.decode(token, self.config.SECRET_KEY, algorithms=[self.config.ALGORITHM])
        except JWTError:
            raise IdentityError("auth/invalid-session")

        session_token = payload.get("session_token")
        if session_token is None:
            raise IdentityError("auth/invalid-session")
        return session_token

    async def _find_session(self, session: AsyncSession, session_token: str) -> Optional[AuthSession]:
        result = await session.execute(
            select(AuthSession).where(AuthSession.session_token == session_token)
        )
        return result.scalar_one_or_none()

    async def _load_profile(self, session: AsyncSession, user_id: str) -> UserProfile:
        profile = await session.get(UserProfile, user_id)
        if profile is None:
            raise IdentityError("auth/profile-not-found")
        return profile
