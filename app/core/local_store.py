"""
Client-local key-value storage for the emergency pipeline.

Values are whole JSON blobs stored as bytes; there are no partial updates.
Nothing here guards against two processes sharing one store.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

PENDING_EMERGENCIES_KEY = "pending_emergencies"
LAST_BLOCK_HASH_KEY = "last_block_hash"
EMERGENCY_INCIDENTS_KEY = "emergency_incidents"

class LocalStore(ABC):
    """Abstract base class for local key-value stores"""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        pass

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        pass

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.error(f"Corrupt value under local key {key!r}, ignoring it")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value).encode("utf-8"))

class InMemoryLocalStore(LocalStore):
    """Dict-backed store that records every read and write"""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self.data: Dict[str, bytes] = dict(initial or {})
        self.operations: List[Tuple[str, str]] = []

    def get(self, key: str) -> Optional[bytes]:
        self.operations.append(("get", key))
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.operations.append(("set", key))
        self.data[key] = value

class FileLocalStore(LocalStore):
    """One file per key under a directory"""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(value)
        tmp_path.replace(path)
