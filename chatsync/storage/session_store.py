"""
Session Stores - the two backends a chat session can live in.

Both implement the same ``SessionStore`` strategy interface; which one a
request touches is decided by ``SessionRouter`` from the session's declared
kind, never from the shape of its id.
"""

import asyncio
import json
import logging
import re
import secrets
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models import ChatSession, SessionKind
from .interface import StorageInterface

logger = logging.getLogger(__name__)

_OBJECT_ID_RE = re.compile(r"[0-9a-f]{24}")


class SessionStore(ABC):
    """Strategy interface over a chat session backend."""

    kind: SessionKind

    @abstractmethod
    def new_id(self) -> str:
        """Generate an id for a session about to be created in this store."""

    @abstractmethod
    def is_valid_id(self, session_id: str) -> bool:
        """Whether session_id has the shape of an id this store issues."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[ChatSession]:
        """Return the stored session, or None if unknown."""

    @abstractmethod
    async def put(self, session: ChatSession) -> None:
        """Insert or replace a session document."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a session and its messages. Returns False if it was absent."""

    @abstractmethod
    async def list_for_owner(self, owner_id: str) -> List[ChatSession]:
        """All sessions owned by owner_id, in no particular order."""

    async def find_by_title(self, owner_id: str, title: str) -> Optional[ChatSession]:
        """First session of owner_id with exactly this title."""
        for session in await self.list_for_owner(owner_id):
            if session.title == title:
                return session
        return None


class MemorySessionStore(SessionStore):
    """
    Ephemeral store: a plain dict living as long as the process.

    Created once at startup and injected into handlers through the router;
    ``clear()`` is called at shutdown. Sessions are copied on the way in and
    out so callers never mutate the stored document in place.
    """

    kind = SessionKind.EPHEMERAL

    def __init__(self):
        self._sessions: Dict[str, ChatSession] = {}

    def new_id(self) -> str:
        return str(uuid.uuid4())

    def is_valid_id(self, session_id: str) -> bool:
        try:
            return str(uuid.UUID(session_id)) == session_id.lower()
        except ValueError:
            return False

    async def get(self, session_id: str) -> Optional[ChatSession]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def put(self, session: ChatSession) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def list_for_owner(self, owner_id: str) -> List[ChatSession]:
        return [
            s.model_copy(deep=True)
            for s in self._sessions.values()
            if s.owner_id == owner_id
        ]

    def clear(self) -> None:
        logger.info(f"Clearing ephemeral session store ({len(self._sessions)} sessions)")
        self._sessions.clear()


class DurableSessionStore(SessionStore):
    """
    Durable store: one JSON document per session on a StorageInterface.

    Layout:
        sessions/index.json            session_id -> owner_id
        sessions/<owner_id>/<id>.json  the ChatSession document
    """

    kind = SessionKind.DURABLE

    def __init__(self, storage: StorageInterface, base_dir: str = "sessions"):
        self.storage = storage
        self.base_dir = base_dir
        self._index_path = f"{base_dir}/index.json"
        self._index_lock = asyncio.Lock()

    def new_id(self) -> str:
        # 24 hex chars, the same shape as a database object id
        return secrets.token_hex(12)

    def is_valid_id(self, session_id: str) -> bool:
        return bool(_OBJECT_ID_RE.fullmatch(session_id))

    def _session_path(self, owner_id: str, session_id: str) -> str:
        return f"{self.base_dir}/{owner_id}/{session_id}.json"

    async def _load_index(self) -> Dict[str, str]:
        content = await self.storage.load(self._index_path)
        if content is None:
            return {}
        return json.loads(content.decode('utf-8'))

    async def _write(self, path: str, payload: str) -> None:
        if not await self.storage.save(path, payload):
            raise OSError(f"Failed to write {path}")

    async def get(self, session_id: str) -> Optional[ChatSession]:
        owner_id = (await self._load_index()).get(session_id)
        if owner_id is None:
            return None
        content = await self.storage.load(self._session_path(owner_id, session_id))
        if content is None:
            return None
        return ChatSession.model_validate_json(content)

    async def put(self, session: ChatSession) -> None:
        document = session.model_dump_json(by_alias=True, indent=2)
        await self._write(self._session_path(session.owner_id, session.id), document)

        async with self._index_lock:
            index = await self._load_index()
            if index.get(session.id) != session.owner_id:
                index[session.id] = session.owner_id
                await self._write(self._index_path, json.dumps(index, indent=2))

    async def delete(self, session_id: str) -> bool:
        async with self._index_lock:
            index = await self._load_index()
            owner_id = index.pop(session_id, None)
            if owner_id is None:
                return False
            await self._write(self._index_path, json.dumps(index, indent=2))
        return await self.storage.delete(self._session_path(owner_id, session_id))

    async def list_for_owner(self, owner_id: str) -> List[ChatSession]:
        sessions = []
        for path in await self.storage.list(f"{self.base_dir}/{owner_id}", pattern="*.json"):
            content = await self.storage.load(path)
            if content is None:
                continue
            try:
                sessions.append(ChatSession.model_validate_json(content))
            except ValueError as e:
                logger.error(f"Skipping unreadable session document {path}: {e}")
        return sessions
