"""
Session Models - chat sessions, their messages and the request/response
shapes of the session API.

Wire format is camelCase (``messageCount``, ``createdAt``); Python code uses
snake_case attributes. Both spellings are accepted on input.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    return str(uuid.uuid4())


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class SessionKind(str, Enum):
    """Which backing store holds a session."""
    EPHEMERAL = "ephemeral"  # process-lifetime memory store
    DURABLE = "durable"  # file-backed store, survives restarts


class Message(CamelModel):
    """A stored chat message. Immutable once appended; ``id`` is the dedup key."""
    id: str
    role: Role
    content: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utcnow)


class MessageIn(CamelModel):
    """A message as submitted by a client; id and timestamp are optional."""
    id: Optional[str] = Field(None, min_length=1)
    role: Role
    content: str = Field(..., min_length=1)
    created_at: Optional[datetime] = None

    def to_message(self) -> Message:
        return Message(
            id=self.id or new_message_id(),
            role=self.role,
            content=self.content,
            created_at=self.created_at or utcnow(),
        )


class SessionSummary(CamelModel):
    """Session metadata without messages, used for listings."""
    id: str
    owner_id: str
    kind: SessionKind
    title: str
    message_count: int = 0
    created_at: datetime
    updated_at: datetime


class ChatSession(SessionSummary):
    """Full session with its ordered messages."""
    messages: List[Message] = Field(default_factory=list)

    def summary(self) -> SessionSummary:
        return SessionSummary(**self.model_dump(exclude={"messages"}))

    def message_ids(self) -> set[str]:
        return {m.id for m in self.messages}


class SessionCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    kind: SessionKind = SessionKind.EPHEMERAL


class SessionUpdate(CamelModel):
    """Client-mutable session fields. Identity, owner and messages are not patchable."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=200)


class AppendRequest(CamelModel):
    """Body of the append endpoint: exactly one of ``message`` / ``messages``."""
    message: Optional[MessageIn] = None
    messages: Optional[List[MessageIn]] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "AppendRequest":
        if (self.message is None) == (self.messages is None):
            raise ValueError("Provide exactly one of 'message' or 'messages'")
        return self


class BatchAppendResult(CamelModel):
    success: bool = True
    message_count: int
    added: int


class PromoteResult(CamelModel):
    action: Literal["created", "updated"]
    id: str
    message_count: int


class DeleteResult(CamelModel):
    success: bool = True
