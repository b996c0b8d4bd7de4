from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.core.emergency_alert import EmergencyAlertService
from app.core.geocoding import Geocoder
from app.core.identity import IdentityGateway
from app.core.incident_ledger import IncidentLedger
from app.core.local_store import FileLocalStore, LocalStore
from app.core.store import StoreGateway
from app.utils.notifications import build_notification_services

@dataclass
class Services:
    """Everything the routers need, built once at startup"""
    store: StoreGateway
    identity: IdentityGateway
    emergency: EmergencyAlertService
    local_store: LocalStore

def build_services(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    local_store: Optional[LocalStore] = None
) -> Services:
    local_store = local_store or FileLocalStore(config.LOCAL_STORE_PATH)
    store = StoreGateway(session_factory)
    identity = IdentityGateway(session_factory, config)
    sms_service, email_service = build_notification_services(config)

    emergency = EmergencyAlertService(
        store=store,
        identity=identity,
        geocoder=Geocoder(config.GEOCODING_URL, config.GOOGLE_MAPS_API_KEY),
        sms_service=sms_service,
        email_service=email_service,
        ledger=IncidentLedger(local_store, config.API_URL),
        local_store=local_store,
        max_retries=config.EMERGENCY_MAX_RETRIES,
        local_log_limit=config.LOCAL_INCIDENT_LOG_LIMIT,
    )

    return Services(store=store, identity=identity, emergency=emergency, local_store=local_store)

def get_services(request: Request) -> Services:
    return request.app.state.services

ServicesDep = Annotated[Services, Depends(get_services)]
