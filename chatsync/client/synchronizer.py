"""
Session Synchronizer - decides when the client's copy of a conversation is
flushed to the server.

Four triggers feed the same additive batch append:

1. assistant turn completion: delayed so the final reply is in local state,
   throttled so a burst of completions collapses into one save;
2. session switch: the outgoing session is flushed fire-and-forget before
   the active id changes;
3. a periodic tick while the session has messages;
4. page/app unload: a beacon that does not wait for the response.

The server merges by message id, so overlapping or racing flushes are
harmless. Flush failures are logged and dropped; the next trigger resends
the whole local buffer.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set

import httpx

from ..config import settings
from ..core.logging_config import SessionLogAdapter
from ..models import Message, Role, SessionKind
from ..models.session import new_message_id
from .api_client import SessionApiClient
from .scheduler import PeriodicTask

logger = logging.getLogger(__name__)


@dataclass
class SyncPolicy:
    """Timings of the synchronizer, in seconds."""
    save_delay: float = 0.3
    throttle_window: float = 2.0
    interval: float = 5.0
    switch_grace: float = 0.1

    @classmethod
    def from_settings(cls, config=settings) -> "SyncPolicy":
        return cls(
            save_delay=config.sync_save_delay_seconds,
            throttle_window=config.sync_throttle_seconds,
            interval=config.sync_interval_seconds,
            switch_grace=config.sync_switch_grace_seconds,
        )


class SessionSynchronizer:
    """
    Client-side owner of the active session's message buffer.

    All methods must be called from the event loop that runs the UI/client.
    The local buffer is never authoritative: reload() replaces it wholesale
    with the server's copy, dropping anything not yet flushed.
    """

    def __init__(
        self,
        client: SessionApiClient,
        policy: Optional[SyncPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.policy = policy or SyncPolicy.from_settings()
        self._clock = clock

        self.current_session_id: Optional[str] = None
        self.current_kind: SessionKind = SessionKind.EPHEMERAL
        self.messages: List[Message] = []
        self.last_saved_at: Optional[float] = None

        self._pending_save: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._periodic = PeriodicTask(self.policy.interval, self._periodic_flush, name="session-autosave")

    @property
    def save_pending(self) -> bool:
        return self._pending_save is not None and not self._pending_save.done()

    @property
    def autosave_running(self) -> bool:
        return self._periodic.running

    # Local state

    def add_message(self, role: Role, content: str) -> Message:
        """Append a message to the local buffer with a fresh client id."""
        message = Message(id=new_message_id(), role=role, content=content)
        self.messages.append(message)
        self._ensure_autosave()
        return message

    def set_messages(self, messages: Sequence[Message]) -> None:
        """Mirror the chat hook's full message list into the buffer."""
        self.messages = list(messages)
        self._ensure_autosave()

    async def open_session(self, session_id: str, kind: SessionKind = SessionKind.EPHEMERAL) -> None:
        """Make a session active without flushing anything (initial page load)."""
        await self._periodic.stop()
        self.current_session_id = session_id
        self.current_kind = kind
        self.messages = []
        self.last_saved_at = None
        await self.reload()
        self._ensure_autosave()

    async def reload(self) -> List[Message]:
        """
        Replace the local buffer with the server's copy of the active session.

        Raises:
            httpx.HTTPError: if the fetch fails; the buffer is left untouched
        """
        if self.current_session_id is None:
            return []
        session = await self.client.get_session(self.current_session_id, kind=self.current_kind)
        dropped = {m.id for m in self.messages} - session.message_ids()
        if dropped:
            self._log(self.current_session_id).warning(
                f"Reload discarded {len(dropped)} unflushed local messages"
            )
        self.messages = list(session.messages)
        return self.messages

    # Trigger 1: assistant turn completion

    def on_turn_complete(self) -> bool:
        """
        Schedule a throttled save after an assistant reply finished.

        Returns:
            bool: False if the trigger was suppressed because a save is
            already pending or the last one completed within the throttle
            window.
        """
        if self.current_session_id is None:
            return False
        if self.save_pending:
            logger.debug("Save already pending, turn-complete trigger suppressed")
            return False
        if (
            self.last_saved_at is not None
            and self._clock() - self.last_saved_at < self.policy.throttle_window
        ):
            logger.debug("Within throttle window, turn-complete trigger suppressed")
            return False

        self._pending_save = asyncio.get_running_loop().create_task(
            self._delayed_save(self.current_session_id, self.current_kind)
        )
        return True

    async def _delayed_save(self, session_id: str, kind: SessionKind) -> None:
        try:
            # Give the final assistant message time to land in local state
            await asyncio.sleep(self.policy.save_delay)
            if session_id != self.current_session_id:
                return
            if await self._flush(session_id, kind, list(self.messages)):
                self.last_saved_at = self._clock()
        finally:
            self._pending_save = None

    async def _cancel_pending_save(self) -> None:
        task, self._pending_save = self._pending_save, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # Trigger 2: session switch

    async def switch_session(self, session_id: str, kind: SessionKind = SessionKind.EPHEMERAL) -> None:
        """
        Flush the outgoing session, then make ``session_id`` active and load it.

        The outgoing flush is dispatched, not awaited; the grace delay only
        lets it get on the wire before the buffer is replaced.
        """
        outgoing_id, outgoing_kind = self.current_session_id, self.current_kind
        outgoing = list(self.messages)

        await self._periodic.stop()
        await self._cancel_pending_save()

        if outgoing_id is not None and outgoing:
            self._dispatch(self._flush(outgoing_id, outgoing_kind, outgoing))

        await asyncio.sleep(self.policy.switch_grace)

        self.current_session_id = session_id
        self.current_kind = kind
        self.messages = []
        self.last_saved_at = None
        await self.reload()
        self._ensure_autosave()

    def _dispatch(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # Trigger 3: periodic tick

    def _ensure_autosave(self) -> None:
        if self.current_session_id is not None and self.messages and not self._periodic.running:
            self._periodic.start()

    async def _periodic_flush(self) -> None:
        if self.current_session_id is None or not self.messages:
            return
        await self._flush(self.current_session_id, self.current_kind, list(self.messages))

    # Trigger 4: unload

    async def on_unload(self) -> bool:
        """Beacon the buffer to the server without waiting for a response body."""
        if self.current_session_id is None or not self.messages:
            return False
        return await self.client.send_beacon(
            self.current_session_id, list(self.messages), kind=self.current_kind
        )

    # Shared

    async def flush(self) -> bool:
        """Flush the active session now, outside any schedule."""
        if self.current_session_id is None:
            return False
        return await self._flush(self.current_session_id, self.current_kind, list(self.messages))

    async def _flush(self, session_id: str, kind: SessionKind, messages: List[Message]) -> bool:
        if not messages:
            return False
        log = self._log(session_id)
        # ValueError covers 2xx replies whose body is not JSON or not a BatchAppendResult
        try:
            result = await self.client.append_messages(session_id, messages, kind=kind)
        except (httpx.HTTPError, ValueError) as e:
            log.warning(f"Flush of {len(messages)} messages failed, will resend on next trigger: {e}")
            return False
        log.debug(f"Flushed {len(messages)} messages ({result.added} new, {result.message_count} stored)")
        return True

    def _log(self, session_id: str) -> SessionLogAdapter:
        return SessionLogAdapter(logger, {"session_id": session_id})

    async def close(self) -> None:
        """Tear down: stop the tick, drop a pending save, wait for dispatched flushes."""
        await self._periodic.stop()
        await self._cancel_pending_save()
        if self._background:
            await asyncio.gather(*list(self._background))
