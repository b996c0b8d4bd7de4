"""
Tamper-evident incident log.

A local, single-writer SHA-256 hash chain: each entry stores the hash of the
one before it (64 zeros for the first), and its own hash over the compact
JSON serialisation of the entry with ``hash`` blanked. The chain head lives
in the local store under ``last_block_hash``; clearing the store starts a new
chain. Entries are also POSTed to the backend, best effort.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import aiohttp

from app.core.local_store import LAST_BLOCK_HASH_KEY, LocalStore
from app.models.emergency import EmergencyEvent

logger = logging.getLogger(__name__)

ZERO_HASH = "0" * 64

LEDGER_ENDPOINT = "/api/blockchain/incident"

def serialize_entry(entry: Dict[str, Any]) -> str:
    return json.dumps(entry, separators=(",", ":"), ensure_ascii=False)

def compute_entry_hash(entry: Dict[str, Any]) -> str:
    """SHA-256 hex digest of the entry with its hash field blanked"""
    blank = {**entry, "hash": ""}
    return hashlib.sha256(serialize_entry(blank).encode("utf-8")).hexdigest()

def verify_entry(entry: Dict[str, Any]) -> bool:
    return entry.get("hash") == compute_entry_hash(entry)

@dataclass
class LedgerReceipt:
    hash: str
    previous_hash: str
    block_number: int
    entry: Dict[str, Any] = field(repr=False)
    # False when only the local chain was updated
    remote_persisted: bool = False

class IncidentLedger:
    def __init__(
        self,
        local_store: LocalStore,
        api_url: str,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
        clock: Callable[[], float] = time.time,
        timeout: float = 10
    ):
        self.local_store = local_store
        self.endpoint = api_url.rstrip("/") + LEDGER_ENDPOINT
        self.session_factory = session_factory
        self.clock = clock
        self.timeout = timeout

    def last_hash(self) -> str:
        stored = self.local_store.get(LAST_BLOCK_HASH_KEY)
        return stored.decode("utf-8") if stored else ZERO_HASH

    def build_entry(self, event: EmergencyEvent, previous_hash: str) -> Dict[str, Any]:
        entry = {
            **event.model_dump(mode="json"),
            # Wall-clock millis: not strictly increasing under clock skew
            "block_number": int(self.clock() * 1000),
            "previous_hash": previous_hash,
            "hash": "",
        }
        entry["hash"] = compute_entry_hash(entry)
        return entry

    async def append(self, event: EmergencyEvent, auth_token: Optional[str] = None) -> LedgerReceipt:
        # No await between reading and moving the chain head
        entry = self.build_entry(event, self.last_hash())
        self.local_store.set(LAST_BLOCK_HASH_KEY, entry["hash"].encode("utf-8"))

        remote_persisted = await self._persist_remote(entry, auth_token)

        return LedgerReceipt(
            hash=entry["hash"],
            previous_hash=entry["previous_hash"],
            block_number=entry["block_number"],
            entry=entry,
            remote_persisted=remote_persisted
        )

    async def _persist_remote(self, entry: Dict[str, Any], auth_token: Optional[str]) -> bool:
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        try:
            async with self.session_factory() as session:
                async with session.post(
                    self.endpoint,
                    json=entry,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if 200 <= response.status < 300:
                        return True
                    logger.warning(f"Blockchain log rejected entry: {response.status}")
                    return False

        except Exception as e:
            logger.error(f"Failed to log to blockchain: {e}")
            return False
