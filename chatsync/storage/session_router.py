"""
Session Router - dispatches session reads/writes to the store matching the
session's declared kind and enforces ownership.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

from ..core.errors import BadRequest, Forbidden, NotFound
from ..models import ChatSession, SessionKind
from .interface import StorageInterface
from .local_storage import LocalStorage
from .session_store import DurableSessionStore, MemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


class SessionRouter:
    """
    Holds one SessionStore per SessionKind.

    Also hands out one asyncio.Lock per session so read-merge-write sequences
    on the same document are serialised within this process.
    """

    def __init__(self, ephemeral: SessionStore, durable: SessionStore):
        self._stores: Dict[SessionKind, SessionStore] = {
            SessionKind.EPHEMERAL: ephemeral,
            SessionKind.DURABLE: durable,
        }
        self._locks: Dict[Tuple[SessionKind, str], asyncio.Lock] = {}

    def store_for(self, kind: SessionKind) -> SessionStore:
        return self._stores[SessionKind(kind)]

    def lock_for(self, kind: SessionKind, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault((SessionKind(kind), session_id), asyncio.Lock())

    def forget_lock(self, kind: SessionKind, session_id: str) -> None:
        self._locks.pop((SessionKind(kind), session_id), None)

    async def load_owned(self, kind: SessionKind, session_id: str, owner_id: str) -> ChatSession:
        """
        Load a session and check that owner_id owns it.

        Raises:
            BadRequest: The id is not one the kind's store could have issued
            NotFound: No session with this id in the kind's store
            Forbidden: The session belongs to someone else
        """
        store = self.store_for(kind)
        if not store.is_valid_id(session_id):
            raise BadRequest(f"Invalid {kind.value} session id format")
        session = await store.get(session_id)
        if session is None:
            raise NotFound("Chat session not found")
        if session.owner_id != owner_id:
            logger.warning(
                f"User {owner_id} denied access to {kind.value} session {session_id}"
            )
            raise Forbidden("Not the owner of this chat session")
        return session

    def close(self) -> None:
        ephemeral = self._stores[SessionKind.EPHEMERAL]
        if isinstance(ephemeral, MemorySessionStore):
            ephemeral.clear()
        self._locks.clear()


# Global session router instance
_session_router: Optional[SessionRouter] = None


def init_session_router(storage: Optional[StorageInterface] = None) -> SessionRouter:
    """
    Initialize the process-wide router with a fresh ephemeral store and a
    durable store on ``storage``.
    """
    global _session_router
    if storage is None:
        storage = LocalStorage()
    _session_router = SessionRouter(
        ephemeral=MemorySessionStore(),
        durable=DurableSessionStore(storage),
    )
    return _session_router


def get_session_router() -> SessionRouter:
    """
    FastAPI dependency returning the process-wide router.

    Raises:
        RuntimeError: If init_session_router() has not been called
    """
    if _session_router is None:
        raise RuntimeError("Session router not initialized. Call init_session_router() first.")
    return _session_router


def shutdown_session_router() -> None:
    global _session_router
    if _session_router is not None:
        _session_router.close()
        _session_router = None
