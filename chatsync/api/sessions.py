"""
Chat session API endpoints.

Every route resolves the requesting user from the bearer token and works
through a SessionService scoped to that user. ``kind`` selects the backing
store; it defaults to the ephemeral store that new sessions are created in.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, status

from ..core.errors import ChatSyncError, InternalError
from ..core.session_service import SessionService
from ..models import (
    AppendRequest, BatchAppendResult, ChatSession, DeleteResult, Message,
    PromoteResult, SessionCreate, SessionKind, SessionSummary, SessionUpdate,
)
from ..storage.session_router import SessionRouter, get_session_router
from ..utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def get_session_service(
    user_id: str = Depends(get_current_user_id),
    session_router: SessionRouter = Depends(get_session_router),
) -> SessionService:
    return SessionService(session_router, user_id)


@asynccontextmanager
async def _storage_call(operation: str):
    """Let domain errors through; turn anything else into InternalError."""
    try:
        yield
    except ChatSyncError:
        raise
    except Exception as e:
        logger.error(f"{operation} failed: {e}", exc_info=True)
        raise InternalError(f"{operation} failed") from e


@router.get("", response_model=List[SessionSummary])
async def list_sessions(
    kind: Optional[SessionKind] = Query(None, description="Restrict to one store"),
    service: SessionService = Depends(get_session_service),
):
    """List the user's sessions (without messages), newest first."""
    async with _storage_call("Listing chat sessions"):
        return await service.list_sessions(kind)


@router.post("", response_model=ChatSession, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: Optional[SessionCreate] = None,
    service: SessionService = Depends(get_session_service),
):
    """Create an empty session. The title defaults to the placeholder."""
    async with _storage_call("Creating chat session"):
        return await service.create_session(payload or SessionCreate())


@router.get("/{session_id}", response_model=ChatSession)
async def get_session(
    session_id: str,
    kind: SessionKind = Query(SessionKind.EPHEMERAL, description="Store holding the session"),
    service: SessionService = Depends(get_session_service),
):
    """Get a session including its messages."""
    async with _storage_call("Fetching chat session"):
        return await service.get_session(kind, session_id)


@router.put("/{session_id}", response_model=ChatSession)
async def update_session(
    session_id: str,
    updates: SessionUpdate,
    kind: SessionKind = Query(SessionKind.EPHEMERAL, description="Store holding the session"),
    service: SessionService = Depends(get_session_service),
):
    """Update client-mutable session fields."""
    async with _storage_call("Updating chat session"):
        return await service.update_session(kind, session_id, updates)


@router.delete("/{session_id}", response_model=DeleteResult)
async def delete_session(
    session_id: str,
    kind: SessionKind = Query(SessionKind.EPHEMERAL, description="Store holding the session"),
    service: SessionService = Depends(get_session_service),
):
    """Delete a session and all of its messages."""
    async with _storage_call("Deleting chat session"):
        await service.delete_session(kind, session_id)
    return DeleteResult()


@router.post("/{session_id}/messages", response_model=Union[Message, BatchAppendResult])
async def append_messages(
    session_id: str,
    body: AppendRequest,
    kind: SessionKind = Query(SessionKind.EPHEMERAL, description="Store holding the session"),
    service: SessionService = Depends(get_session_service),
):
    """
    Append ``{message}`` or merge ``{messages: [...]}`` into a session.

    Single mode returns the stored message (the existing one when the id was
    already present). Batch mode returns the resulting message count.
    """
    async with _storage_call("Appending messages"):
        if body.message is not None:
            message, _ = await service.append(kind, session_id, message=body.message)
            return message
        return await service.append(kind, session_id, messages=body.messages)


@router.get("/{session_id}/messages", response_model=List[Message])
async def get_messages(
    session_id: str,
    kind: SessionKind = Query(SessionKind.EPHEMERAL, description="Store holding the session"),
    service: SessionService = Depends(get_session_service),
):
    """Get a session's messages in conversation order."""
    async with _storage_call("Fetching messages"):
        return await service.get_messages(kind, session_id)


@router.post("/{session_id}/promote", response_model=PromoteResult)
async def promote_session(
    session_id: str,
    service: SessionService = Depends(get_session_service),
):
    """Copy an ephemeral session into the durable store."""
    async with _storage_call("Promoting chat session"):
        return await service.promote(session_id)
