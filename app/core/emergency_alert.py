"""
Emergency alert pipeline.

An SOS event is turned into a persisted incident, the user's emergency
contacts are notified one by one, and the event is appended to the local
incident log and the hash chain. When the incident cannot be written (or the
contacts cannot be read) the event goes to a local retry queue instead and
the contacts are still notified on a best-effort basis.
"""

import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Union

from app.core.geocoding import AddressResolution, Fallback, Geocoder
from app.core.geofencing import format_coordinates, maps_link
from app.core.identity import IdentityGateway
from app.core.incident_ledger import IncidentLedger, LedgerReceipt
from app.core.local_store import EMERGENCY_INCIDENTS_KEY, PENDING_EMERGENCIES_KEY, LocalStore
from app.core.store import StoreGateway
from app.models.emergency import (
    EmergencyEvent, EmergencyIncidentCreate, EmergencyIncidentUpdate,
    IncidentStatus, PendingAlert, Severity
)
from app.models.user import EmergencyContact, EmergencyContactCreate, UserProfile
from app.utils.notifications import EmailSender, SMSSender

logger = logging.getLogger(__name__)

EMERGENCY_EMAIL_SUBJECT = "Emergency Alert"

TerminalFailureHandler = Callable[[PendingAlert], Union[None, Awaitable[None]]]

@dataclass
class NotificationOutcome:
    attempted: List[str] = field(default_factory=list)
    delivered: List[str] = field(default_factory=list)

@dataclass
class RetrySweepResult:
    delivered: List[str] = field(default_factory=list)
    requeued: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

class EmergencyAlertService:
    def __init__(
        self,
        store: StoreGateway,
        identity: IdentityGateway,
        geocoder: Geocoder,
        sms_service: SMSSender,
        email_service: EmailSender,
        ledger: IncidentLedger,
        local_store: LocalStore,
        max_retries: int = 3,
        local_log_limit: int = 50,
        on_terminal_failure: Optional[TerminalFailureHandler] = None,
        clock: Callable[[], float] = time.time
    ):
        self.store = store
        self.identity = identity
        self.geocoder = geocoder
        self.sms_service = sms_service
        self.email_service = email_service
        self.ledger = ledger
        self.local_store = local_store
        self.max_retries = max_retries
        self.local_log_limit = local_log_limit
        self.on_terminal_failure = on_terminal_failure
        self.clock = clock

    async def send_emergency_alert(
        self, event: EmergencyEvent, auth_token: Optional[str] = None
    ) -> bool:
        """
        Run the full alert pipeline for one event.

        Returns True once the incident is written and the contacts have been
        read. Never raises: on failure the event is queued for retry and
        False is returned. The caller's bearer token, when given, is
        forwarded to the hash-chain backend.
        """
        return await self._dispatch(event, queue_on_failure=True, auth_token=auth_token)

    async def _dispatch(
        self, event: EmergencyEvent, queue_on_failure: bool, auth_token: Optional[str] = None
    ) -> bool:
        try:
            resolution = await self._resolve_address(event)

            incident_id = await self.store.create_emergency_incident(
                EmergencyIncidentCreate(
                    user_id=event.user_id,
                    digital_id=event.digital_id,
                    latitude=event.location.lat,
                    longitude=event.location.lng,
                    address=resolution.address,
                    timestamp=event.timestamp,
                    type=event.emergency_type,
                    severity=event.severity or Severity.HIGH,
                    status=IncidentStatus.ACTIVE,
                    description=event.additional_info,
                    notified_contacts=[]
                )
            )

            profile = await self.identity.get_profile(event.user_id)
            contacts = profile.contacts() if profile else []

        except Exception as e:
            logger.error(f"Error sending emergency alert: {e}")
            if queue_on_failure:
                try:
                    self._store_for_retry(event)
                except Exception as queue_error:
                    logger.critical(f"Could not queue emergency alert for retry: {queue_error}")
            await self._notify_best_effort(event)
            return False

        outcome = await self._notify_emergency_contacts(event, contacts, profile)

        # The incident already exists, so nothing below may trigger a retry
        try:
            await self.store.update_emergency_incident(
                incident_id,
                EmergencyIncidentUpdate(
                    notified_contacts=outcome.attempted,
                    delivered_contacts=outcome.delivered
                )
            )
        except Exception as e:
            logger.error(f"Failed to record notified contacts on incident {incident_id}: {e}")

        try:
            self._log_incident_locally(event)
            await self.log_incident_to_blockchain(event, auth_token)
        except Exception as e:
            logger.error(f"Failed to log incident {incident_id} locally: {e}")

        logger.info(
            f"Emergency alert {incident_id} dispatched: "
            f"{len(outcome.delivered)}/{len(outcome.attempted)} contacts reached"
        )
        return True

    async def _resolve_address(self, event: EmergencyEvent) -> AddressResolution:
        lat, lng = event.location.lat, event.location.lng
        try:
            return await self.geocoder.resolve_address(lat, lng)
        except Exception as e:
            logger.error(f"Error getting address from coordinates: {e}")
            return Fallback(format_coordinates(lat, lng), reason=str(e))

    async def _notify_best_effort(self, event: EmergencyEvent):
        try:
            profile = await self.identity.get_profile(event.user_id)
            contacts = profile.contacts() if profile else []
            await self._notify_emergency_contacts(event, contacts, profile)
        except Exception as e:
            logger.error(f"Failed to notify emergency contacts: {e}")

    async def _notify_emergency_contacts(
        self,
        event: EmergencyEvent,
        contacts: List[EmergencyContact],
        profile: Optional[UserProfile]
    ) -> NotificationOutcome:
        outcome = NotificationOutcome()
        message = self.create_emergency_message(event, profile)

        for contact in contacts:
            outcome.attempted.append(contact.id)
            reached = False

            try:
                reached = await self.sms_service.send_sms(contact.phone, message)
                if not reached:
                    logger.error(f"SMS to {contact.name} was not delivered")
            except Exception as e:
                logger.error(f"Failed to send SMS to {contact.name}: {e}")

            if contact.email:
                try:
                    if await self.email_service.send_email(
                        contact.email, EMERGENCY_EMAIL_SUBJECT, message
                    ):
                        reached = True
                    else:
                        logger.error(f"Email to {contact.name} was not delivered")
                except Exception as e:
                    logger.error(f"Failed to send email to {contact.name}: {e}")

            if reached:
                outcome.delivered.append(contact.id)

        return outcome

    def create_emergency_message(self, event: EmergencyEvent, profile: Optional[UserProfile]) -> str:
        name = (profile.name if profile else "") or "A traveler"
        try:
            when = datetime.fromisoformat(event.timestamp.replace("Z", "+00:00"))
            # Naive timestamps are taken as UTC
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
            formatted_time = when.astimezone(timezone.utc).strftime("%H:%M %d/%m/%Y UTC")
        except ValueError:
            formatted_time = event.timestamp

        message = (
            f"🚨 EMERGENCY ALERT 🚨\n\n"
            f"{name} has triggered an emergency alert.\n\n"
            f"Time: {formatted_time}\n"
            f"Location: {maps_link(event.location.lat, event.location.lng)}\n"
            f"Digital ID: {event.digital_id}\n"
        )
        if event.additional_info:
            message += f"Details: {event.additional_info}\n"
        message += (
            "\nPlease check on them immediately or contact local authorities if needed.\n\n"
            "This is an automated message from Safe Traveler Buddy."
        )
        return message

    # Local persistence
    def _millis(self) -> int:
        return int(self.clock() * 1000)

    def _log_incident_locally(self, event: EmergencyEvent):
        incidents = self.local_store.get_json(EMERGENCY_INCIDENTS_KEY, [])
        incidents.append({
            **event.model_dump(mode="json"),
            "id": f"incident_{self._millis()}",
            "status": "sent",
            "created_at": _now_iso(),
        })
        # Keep only the most recent entries
        self.local_store.set_json(EMERGENCY_INCIDENTS_KEY, incidents[-self.local_log_limit:])

    def _load_pending(self) -> List[PendingAlert]:
        pending = []
        for raw in self.local_store.get_json(PENDING_EMERGENCIES_KEY, []):
            try:
                pending.append(PendingAlert.model_validate(raw))
            except ValueError as e:
                logger.error(f"Discarding unreadable pending alert: {e}")
        return pending

    def _save_pending(self, pending: List[PendingAlert]):
        self.local_store.set_json(
            PENDING_EMERGENCIES_KEY,
            [entry.model_dump(mode="json") for entry in pending]
        )

    def _store_for_retry(self, event: EmergencyEvent):
        pending = self._load_pending()
        entry = PendingAlert(
            id=f"pending_{self._millis()}_{uuid.uuid4().hex[:6]}",
            event=event,
            retry_count=0,
            created_at=_now_iso()
        )
        pending.append(entry)
        self._save_pending(pending)
        logger.warning(f"Emergency alert queued for retry as {entry.id}")

    def get_pending_alerts(self) -> List[PendingAlert]:
        return self._load_pending()

    async def retry_pending_alerts(
        self, user_id: Optional[str] = None, auth_token: Optional[str] = None
    ) -> RetrySweepResult:
        """
        Redispatch queued events.

        An entry is retried while its retry_count is below max_retries; a
        failed attempt bumps the count, and an entry whose count reaches the
        bound is dropped and reported through on_terminal_failure. Not
        self-scheduling: call it on app resume, a timer or reconnect.

        With user_id set only that user's entries are touched; the rest stay
        queued as they are.
        """
        result = RetrySweepResult()
        snapshot = self._load_pending()
        remaining: List[PendingAlert] = []

        for entry in snapshot:
            if user_id is not None and entry.event.user_id != user_id:
                remaining.append(entry)
                continue

            if entry.retry_count >= self.max_retries:
                await self._drop(entry, result)
                continue

            if await self._dispatch(entry.event, queue_on_failure=False, auth_token=auth_token):
                result.delivered.append(entry.id)
                continue

            entry.retry_count += 1
            if entry.retry_count < self.max_retries:
                remaining.append(entry)
                result.requeued.append(entry.id)
            else:
                await self._drop(entry, result)

        # Keep anything queued by a send that ran while we were awaiting
        snapshot_ids = {entry.id for entry in snapshot}
        queued_meanwhile = [
            entry for entry in self._load_pending() if entry.id not in snapshot_ids
        ]
        self._save_pending(remaining + queued_meanwhile)

        logger.info(
            f"Retry sweep: {len(result.delivered)} delivered, "
            f"{len(result.requeued)} requeued, {len(result.dropped)} dropped"
        )
        return result

    async def _drop(self, entry: PendingAlert, result: RetrySweepResult):
        result.dropped.append(entry.id)
        logger.critical(
            f"Emergency alert {entry.id} for user {entry.event.user_id} "
            f"dropped after {entry.retry_count} failed attempts"
        )
        if self.on_terminal_failure is None:
            return
        try:
            outcome: Any = self.on_terminal_failure(entry)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Terminal failure handler failed for {entry.id}: {e}")

    # Hash chain
    async def log_incident_to_blockchain(
        self, event: EmergencyEvent, auth_token: Optional[str] = None
    ) -> LedgerReceipt:
        """Append to the hash chain; the receipt's hash is always the locally computed one"""
        return await self.ledger.append(event, auth_token)

    # Contacts
    async def get_emergency_contacts(self, user_id: str) -> List[EmergencyContact]:
        profile = await self.identity.get_profile(user_id)
        return profile.contacts() if profile else []

    async def add_emergency_contact(
        self, user_id: str, contact: EmergencyContactCreate
    ) -> EmergencyContact:
        return await self.identity.add_emergency_contact(user_id, contact)
