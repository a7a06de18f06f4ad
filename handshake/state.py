"""
Persisted connect state and credential record, with broadcast on every change
"""

from typing import Dict, Any, Optional

from config import STORAGE_CONFIG
from core.logging_config import get_logger
from events import EventBus, EventTypes, event_bus as default_event_bus
from security import sanitize_storage_for_logging
from storage import StateStore

from .models import ConnectState, CredentialRecord

logger = get_logger(__name__)


class ConnectStateRepository:
    """
    Read-modify-write access to the connect state and the credential record.

    Nothing here is cached: every read goes to the store, since the process
    may have been replaced since the last call.
    """

    def __init__(self,
                 store: StateStore,
                 bus: Optional[EventBus] = None,
                 state_key: str = STORAGE_CONFIG["connect_state_key"],
                 credential_key: str = STORAGE_CONFIG["credential_key"]):
        self.store = store
        self.bus = bus or default_event_bus
        self.state_key = state_key
        self.credential_key = credential_key

    async def read_state(self) -> ConnectState:
        return ConnectState.from_dict(await self.store.get(self.state_key))

    async def update_state(self, updates: Dict[str, Any],
                           expected_session_id: Optional[str] = None) -> Optional[ConnectState]:
        """
        Merge ``updates`` into the stored state, persist it and broadcast it.

        Args:
            updates: Partial update in ``ConnectState`` field names
            expected_session_id: When given, the write only happens if the
                stored session id still matches

        Returns:
            The new state, or None when the expected session was superseded
        """
        current = await self.read_state()
        if expected_session_id is not None and current.session_id != expected_session_id:
            logger.info("Skipping state write for superseded session", extra={"extra_data": {
                "stale_session": expected_session_id[:8],
                "current_session": (current.session_id or "")[:8],
            }})
            return None

        new_state = current.merged(updates)
        await self.store.set(self.state_key, new_state.to_dict())

        logger.debug(f"Connect state updated: {new_state.status.value}", extra={
            "extra_data": sanitize_storage_for_logging(new_state.to_dict())
        })
        self.broadcast(new_state)
        return new_state

    async def reset_state(self) -> ConnectState:
        """Replace the stored state with a fresh idle record"""
        new_state = ConnectState()
        await self.store.set(self.state_key, new_state.to_dict())
        self.broadcast(new_state)
        return new_state

    def broadcast(self, state: ConnectState) -> None:
        """Notify listeners of the full current state; no listener is not an error"""
        self.bus.emit(EventTypes.GITHUB_CONNECT_STATUS, state.to_dict(), source="connect_flow")

    async def read_credential(self) -> Optional[CredentialRecord]:
        data = await self.store.get(self.credential_key)
        if not data:
            return None
        return CredentialRecord.from_dict(data)

    async def write_credential(self, record: CredentialRecord) -> None:
        await self.store.set(self.credential_key, record.to_dict())

    async def remove_credential(self) -> None:
        await self.store.remove(self.credential_key)
