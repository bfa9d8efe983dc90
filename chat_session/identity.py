"""
Session identity store.

Assigns a stable anonymous identifier to this client and keeps it in a small
JSON key-value file, so it survives restarts. History is never persisted.

If the file cannot be read or written the store falls back to a volatile
identifier for this process; callers never see the failure.
"""
from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Optional

from logging_setup import get_logger, Component
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import IdentityStoreError, describe_error

USER_ID_KEY = "chatUserId"

logger = get_logger(Component.IDENTITY)
emitter = EventEmitter(ObsComponent.IDENTITY)


class ClientStateFile:
    """Durable client-side key-value storage backed by one JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            raise IdentityStoreError(f"cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise IdentityStoreError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise IdentityStoreError(f"cannot write {self.path}: {e}") from e


class SessionIdentityStore:
    """Resolves the per-client session identifier once, then serves it unchanged."""

    def __init__(self, storage: ClientStateFile):
        self._storage = storage
        self._session_id: Optional[str] = None
        self.volatile = False

    def get_session_id(self) -> str:
        if self._session_id is None:
            self._session_id = self._resolve()
        return self._session_id

    def _resolve(self) -> str:
        try:
            stored = self._storage.get(USER_ID_KEY)
            if stored:
                logger.debug("Session identifier loaded", session_id=stored)
                return stored
            new_id = str(uuid.uuid4())
            self._storage.set(USER_ID_KEY, new_id)
            logger.info("Session identifier created", session_id=new_id, path=str(self._storage.path))
            return new_id
        except IdentityStoreError as e:
            new_id = str(uuid.uuid4())
            self.volatile = True
            logger.warning(
                "Client state unavailable; using volatile session identifier",
                session_id=new_id,
                error=describe_error(e),
            )
            emitter.emit(
                "identity.volatile",
                session_id=new_id,
                severity=Severity.WARN,
                category="storage_unavailable",
            )
            return new_id


def get_identity_store(state_path: Optional[str] = None) -> SessionIdentityStore:
    """Get or create the process-wide identity store."""
    global _store
    if _store is None:
        if state_path is None:
            from .config import get_config
            state_path = get_config().state_path
        _store = SessionIdentityStore(ClientStateFile(state_path))
    return _store


def get_session_id(state_path: Optional[str] = None) -> str:
    """Process-wide session identifier; read once, immutable thereafter."""
    return get_identity_store(state_path).get_session_id()


# Global identity store (lazy loaded)
_store: Optional[SessionIdentityStore] = None
