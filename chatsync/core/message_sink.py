"""
Message Sink - merges submitted messages into a stored chat session.

Merging is a set-union keyed by message id: messages already stored keep
their position, new ids are appended in submission order, and resubmitting
an already-saved prefix never creates duplicates. That makes every append
idempotent and lets independent flushes of the same session race safely.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import settings
from ..models import (
    BatchAppendResult, ChatSession, Message, MessageIn, Role, SessionKind,
)
from ..models.session import utcnow
from ..storage.session_router import SessionRouter

logger = logging.getLogger(__name__)


def merge_messages(
    existing: Sequence[Message],
    incoming: Iterable[Message],
) -> Tuple[List[Message], List[Message]]:
    """
    Union two message sequences by id, preserving first-seen order.

    Args:
        existing: Messages already stored, in conversation order
        incoming: Messages submitted by a client, in submission order

    Returns:
        (merged, added): the full merged sequence and the messages that
        were not present before
    """
    seen = {m.id for m in existing}
    added: List[Message] = []
    for message in incoming:
        if message.id in seen:
            continue
        seen.add(message.id)
        added.append(message)
    return list(existing) + added, added


def derive_title(messages: Sequence[Message], max_length: int) -> Optional[str]:
    """Title from the first line of the first user message, or None."""
    for message in messages:
        if message.role != Role.USER:
            continue
        lines = message.content.strip().splitlines()
        if not lines:
            return None
        first_line = lines[0].strip()
        if len(first_line) > max_length:
            return first_line[:max_length].rstrip() + "..."
        return first_line
    return None


class MessageSink:
    """Idempotent append endpoint over the session stores."""

    def __init__(
        self,
        router: SessionRouter,
        default_title: str = settings.default_session_title,
        title_max_length: int = settings.title_max_length,
    ):
        self.router = router
        self.default_title = default_title
        self.title_max_length = title_max_length

    def _commit(self, session: ChatSession, merged: List[Message]) -> None:
        session.messages = merged
        session.message_count = len(merged)
        session.updated_at = utcnow()
        if session.title == self.default_title:
            title = derive_title(merged, self.title_max_length)
            if title:
                session.title = title

    async def append_message(
        self,
        kind: SessionKind,
        session_id: str,
        owner_id: str,
        message_in: MessageIn,
    ) -> Tuple[Message, bool]:
        """
        Append one message unless its id is already stored.

        Returns:
            (message, created): the stored message and whether it was new.
            On an id collision the previously stored message is returned
            unchanged.

        Raises:
            NotFound, Forbidden: from the ownership check
        """
        store = self.router.store_for(kind)
        async with self.router.lock_for(kind, session_id):
            session = await self.router.load_owned(kind, session_id, owner_id)

            if message_in.id is not None:
                for stored in session.messages:
                    if stored.id == message_in.id:
                        logger.debug(f"Duplicate message {stored.id} in session {session_id}, skipped")
                        return stored, False

            message = message_in.to_message()
            self._commit(session, session.messages + [message])
            await store.put(session)

        logger.info(
            f"Appended message {message.id} to {kind.value} session {session_id}",
            extra={"extra_fields": {"session_id": session_id, "message_count": session.message_count}},
        )
        return message, True

    async def append_messages(
        self,
        kind: SessionKind,
        session_id: str,
        owner_id: str,
        messages_in: Sequence[MessageIn],
    ) -> BatchAppendResult:
        """
        Merge a batch into the session.

        Ids already stored are skipped; messages without an id get a fresh
        one and are always appended. A batch that adds nothing does not
        touch the stored document.
        """
        store = self.router.store_for(kind)
        async with self.router.lock_for(kind, session_id):
            session = await self.router.load_owned(kind, session_id, owner_id)
            merged, added = merge_messages(
                session.messages, (m.to_message() for m in messages_in)
            )
            # Duplicate-only batches skip the write so periodic resends do not bump
            # updated_at and reorder the session list
            if added:
                self._commit(session, merged)
                await store.put(session)

        logger.info(
            f"Merged batch into {kind.value} session {session_id}: "
            f"{len(added)} new of {len(messages_in)} submitted",
            extra={"extra_fields": {
                "session_id": session_id,
                "submitted": len(messages_in),
                "added": len(added),
                "message_count": session.message_count,
            }},
        )
        return BatchAppendResult(message_count=session.message_count, added=len(added))
