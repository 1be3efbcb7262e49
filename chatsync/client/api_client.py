"""
Session API Client - async HTTP client for the ChatSync session API.
Used by the SessionSynchronizer and by anything scripting against a server.
"""

import logging
from typing import List, Optional, Sequence

import httpx

from ..models import (
    BatchAppendResult, ChatSession, Message, PromoteResult, SessionKind,
    SessionSummary,
)

logger = logging.getLogger(__name__)


def _message_payload(messages: Sequence[Message]) -> dict:
    return {"messages": [m.model_dump(mode="json", by_alias=True) for m in messages]}


class SessionApiClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Every call except ``send_beacon`` raises ``httpx.HTTPError`` on transport
    failures and non-2xx responses.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Server root, e.g. "http://localhost:8000"
            token: Bearer token; can be set later via login()
            timeout: Request timeout in seconds
            transport: Optional custom transport (e.g. httpx.ASGITransport)
        """
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SessionApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def login(self, email: str, password: str) -> str:
        """Log in and use the returned token for subsequent calls."""
        response = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        token = response.json()["access_token"]
        self.set_token(token)
        return token

    async def list_sessions(self, kind: Optional[SessionKind] = None) -> List[SessionSummary]:
        params = {"kind": kind.value} if kind else None
        response = await self._request("GET", "/sessions", params=params)
        return [SessionSummary.model_validate(item) for item in response.json()]

    async def create_session(
        self,
        title: Optional[str] = None,
        kind: SessionKind = SessionKind.EPHEMERAL,
    ) -> ChatSession:
        body = {"kind": kind.value}
        if title:
            body["title"] = title
        response = await self._request("POST", "/sessions", json=body)
        return ChatSession.model_validate(response.json())

    async def get_session(
        self,
        session_id: str,
        kind: SessionKind = SessionKind.EPHEMERAL,
    ) -> ChatSession:
        response = await self._request("GET", f"/sessions/{session_id}", params={"kind": kind.value})
        return ChatSession.model_validate(response.json())

    async def update_session(
        self,
        session_id: str,
        title: str,
        kind: SessionKind = SessionKind.EPHEMERAL,
    ) -> ChatSession:
        response = await self._request(
            "PUT", f"/sessions/{session_id}", params={"kind": kind.value}, json={"title": title}
        )
        return ChatSession.model_validate(response.json())

    async def delete_session(self, session_id: str, kind: SessionKind = SessionKind.EPHEMERAL) -> None:
        await self._request("DELETE", f"/sessions/{session_id}", params={"kind": kind.value})

    async def get_messages(
        self,
        session_id: str,
        kind: SessionKind = SessionKind.EPHEMERAL,
    ) -> List[Message]:
        response = await self._request(
            "GET", f"/sessions/{session_id}/messages", params={"kind": kind.value}
        )
        return [Message.model_validate(item) for item in response.json()]

    async def append_messages(
        self,
        session_id: str,
        messages: Sequence[Message],
        kind: SessionKind = SessionKind.EPHEMERAL,
    ) -> BatchAppendResult:
        """Merge a batch of messages into a session (idempotent by id)."""
        response = await self._request(
            "POST",
            f"/sessions/{session_id}/messages",
            params={"kind": kind.value},
            json=_message_payload(messages),
        )
        return BatchAppendResult.model_validate(response.json())

    async def promote(self, session_id: str) -> PromoteResult:
        response = await self._request("POST", f"/sessions/{session_id}/promote")
        return PromoteResult.model_validate(response.json())

    async def send_beacon(
        self,
        session_id: str,
        messages: Sequence[Message],
        kind: SessionKind = SessionKind.EPHEMERAL,
    ) -> bool:
        """
        Fire a batch append without reading the response.

        Meant for teardown paths: the body is never read, so the caller does
        not depend on the server producing one. A 4xx/5xx status is logged
        but still counts as dispatched.

        Returns:
            bool: True if the server received the request, including when it
            rejected it; False on a transport failure
        """
        request = self._client.build_request(
            "POST",
            f"/sessions/{session_id}/messages",
            params={"kind": kind.value},
            json=_message_payload(messages),
        )
        try:
            response = await self._client.send(request, stream=True)
            await response.aclose()
        except httpx.HTTPError as e:
            logger.warning(f"Beacon for session {session_id} was not delivered: {e}")
            return False
        if response.is_error:
            logger.warning(f"Beacon for session {session_id} rejected with status {response.status_code}")
        return True
