"""
Session Service - per-user operations on chat sessions.
Wraps the SessionRouter with ownership-scoped CRUD, message access and the
ephemeral -> durable promotion.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

from ..config import settings
from ..models import (
    BatchAppendResult, ChatSession, Message, MessageIn, PromoteResult,
    SessionCreate, SessionKind, SessionSummary, SessionUpdate,
)
from ..models.session import utcnow
from ..storage.session_router import SessionRouter
from .message_sink import MessageSink

logger = logging.getLogger(__name__)


class SessionService:
    """
    Chat session operations for a single user.
    Every read and write is scoped to ``owner_id``.
    """

    def __init__(self, router: SessionRouter, owner_id: str):
        """
        Args:
            router: Router over the ephemeral and durable stores
            owner_id: Authenticated user performing the operations
        """
        self.router = router
        self.owner_id = owner_id
        self.sink = MessageSink(router)

    async def list_sessions(self, kind: Optional[SessionKind] = None) -> List[SessionSummary]:
        """
        List the user's sessions, most recently updated first.

        Args:
            kind: Restrict to one store; both stores when None
        """
        kinds = [kind] if kind else list(SessionKind)
        sessions: List[ChatSession] = []
        for k in kinds:
            sessions.extend(await self.router.store_for(k).list_for_owner(self.owner_id))
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return [s.summary() for s in sessions]

    async def create_session(self, payload: SessionCreate) -> ChatSession:
        store = self.router.store_for(payload.kind)
        now = utcnow()
        session = ChatSession(
            id=store.new_id(),
            owner_id=self.owner_id,
            kind=payload.kind,
            title=payload.title or settings.default_session_title,
            messages=[],
            message_count=0,
            created_at=now,
            updated_at=now,
        )
        await store.put(session)
        logger.info(f"Created {payload.kind.value} session {session.id} for user {self.owner_id}")
        return session

    async def get_session(self, kind: SessionKind, session_id: str) -> ChatSession:
        return await self.router.load_owned(kind, session_id, self.owner_id)

    async def update_session(
        self,
        kind: SessionKind,
        session_id: str,
        updates: SessionUpdate,
    ) -> ChatSession:
        """Apply client-mutable fields (currently just the title)."""
        store = self.router.store_for(kind)
        async with self.router.lock_for(kind, session_id):
            session = await self.router.load_owned(kind, session_id, self.owner_id)
            if updates.title is not None:
                session.title = updates.title
            session.updated_at = utcnow()
            await store.put(session)
        return session

    async def delete_session(self, kind: SessionKind, session_id: str) -> None:
        """Delete a session together with all of its messages."""
        store = self.router.store_for(kind)
        async with self.router.lock_for(kind, session_id):
            await self.router.load_owned(kind, session_id, self.owner_id)
            await store.delete(session_id)
        self.router.forget_lock(kind, session_id)
        logger.info(f"Deleted {kind.value} session {session_id} for user {self.owner_id}")

    async def get_messages(self, kind: SessionKind, session_id: str) -> List[Message]:
        session = await self.router.load_owned(kind, session_id, self.owner_id)
        return session.messages

    async def append(
        self,
        kind: SessionKind,
        session_id: str,
        message: Optional[MessageIn] = None,
        messages: Optional[Sequence[MessageIn]] = None,
    ) -> Union[Tuple[Message, bool], BatchAppendResult]:
        """Single-message append when ``message`` is given, batch merge otherwise."""
        if message is not None:
            return await self.sink.append_message(kind, session_id, self.owner_id, message)
        return await self.sink.append_messages(kind, session_id, self.owner_id, messages or [])

    async def promote(self, session_id: str) -> PromoteResult:
        """
        Copy an ephemeral session into the durable store.

        The durable target is the user's session with the same title; its
        messages are overwritten with the ephemeral copy. If there is no
        such session a new durable one is created. Promotions of the same
        (owner, title) pair run one at a time so they cannot both create.
        """
        source = await self.router.load_owned(SessionKind.EPHEMERAL, session_id, self.owner_id)
        durable = self.router.store_for(SessionKind.DURABLE)
        messages = [m.model_copy() for m in source.messages]
        title_key = f"promote:{self.owner_id}:{source.title}"

        async with self.router.lock_for(SessionKind.DURABLE, title_key):
            now = utcnow()
            target = await durable.find_by_title(self.owner_id, source.title)
            if target is not None:
                async with self.router.lock_for(SessionKind.DURABLE, target.id):
                    # Fresh copy, the lookup ran before this lock was held
                    target = await durable.get(target.id) or target
                    target.messages = messages
                    target.message_count = len(messages)
                    target.updated_at = now
                    await durable.put(target)
                action = "updated"
            else:
                target = ChatSession(
                    id=durable.new_id(),
                    owner_id=self.owner_id,
                    kind=SessionKind.DURABLE,
                    title=source.title,
                    messages=messages,
                    message_count=len(messages),
                    created_at=now,
                    updated_at=now,
                )
                await durable.put(target)
                action = "created"

        logger.info(
            f"Promoted session {session_id} -> durable {target.id} ({action}, "
            f"{len(messages)} messages)"
        )
        return PromoteResult(action=action, id=target.id, message_count=len(messages))
