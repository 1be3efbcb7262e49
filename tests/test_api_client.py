"""
End-to-end tests: SessionApiClient and SessionSynchronizer against the app
over httpx.ASGITransport.
"""

import logging

import httpx
import pytest

from chatsync.client import SessionApiClient, SessionSynchronizer, SyncPolicy
from chatsync.main import app
from chatsync.models import Message, Role, SessionKind


@pytest.fixture
def api_client(session_router, register_user):
    headers = register_user("frank@example.com")
    token = headers["Authorization"].split(" ", 1)[1]
    return SessionApiClient(
        "http://testserver", token=token, transport=httpx.ASGITransport(app=app)
    )


class TestSessionApiClient:

    @pytest.mark.asyncio
    async def test_session_lifecycle(self, api_client):
        async with api_client:
            session = await api_client.create_session(title="Notes")
            assert session.kind == SessionKind.EPHEMERAL

            result = await api_client.append_messages(session.id, [
                Message(id="a", role=Role.USER, content="hi"),
                Message(id="b", role=Role.ASSISTANT, content="hello"),
            ])
            assert result.message_count == 2

            result = await api_client.append_messages(session.id, [
                Message(id="b", role=Role.ASSISTANT, content="hello"),
                Message(id="c", role=Role.USER, content="bye"),
            ])
            assert (result.message_count, result.added) == (3, 1)

            messages = await api_client.get_messages(session.id)
            assert [m.id for m in messages] == ["a", "b", "c"]

            renamed = await api_client.update_session(session.id, "Renamed")
            assert renamed.title == "Renamed"

            listed = await api_client.list_sessions()
            assert [s.id for s in listed] == [session.id]

            promoted = await api_client.promote(session.id)
            assert promoted.action == "created"
            durable = await api_client.get_session(promoted.id, kind=SessionKind.DURABLE)
            assert durable.message_count == 3

            await api_client.delete_session(session.id)
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                await api_client.get_session(session.id)
            assert exc_info.value.response.status_code == 404

    @pytest.mark.asyncio
    async def test_login(self, session_router, register_user):
        register_user("gina@example.com")
        async with SessionApiClient(
            "http://testserver", transport=httpx.ASGITransport(app=app)
        ) as client:
            await client.login("gina@example.com", "secret123")
            assert await client.list_sessions() == []

    @pytest.mark.asyncio
    async def test_beacon_does_not_raise(self, api_client):
        async with api_client:
            session = await api_client.create_session()
            delivered = await api_client.send_beacon(
                session.id, [Message(id="z", role=Role.USER, content="bye")]
            )
            assert delivered is True
            assert [m.id for m in await api_client.get_messages(session.id)] == ["z"]

    @pytest.mark.asyncio
    async def test_beacon_reports_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        async with SessionApiClient(
            "http://testserver", token="t", transport=httpx.MockTransport(refuse)
        ) as client:
            delivered = await client.send_beacon(
                "11111111-1111-4111-8111-111111111111",
                [Message(id="z", role=Role.USER, content="bye")],
            )
            assert delivered is False

    @pytest.mark.asyncio
    async def test_beacon_logs_rejected_status(self, caplog):
        def unavailable(request):
            return httpx.Response(503, text="maintenance")

        async with SessionApiClient(
            "http://testserver", token="t", transport=httpx.MockTransport(unavailable)
        ) as client:
            with caplog.at_level(logging.WARNING, logger="chatsync.client.api_client"):
                delivered = await client.send_beacon(
                    "11111111-1111-4111-8111-111111111111",
                    [Message(id="z", role=Role.USER, content="bye")],
                )

        assert delivered is True
        assert any("rejected with status 503" in r.getMessage() for r in caplog.records)


class TestSynchronizerEndToEnd:

    @pytest.mark.asyncio
    async def test_conversation_persisted_across_switch(self, api_client):
        policy = SyncPolicy(save_delay=0.01, throttle_window=0.0, interval=60.0, switch_grace=0.01)
        async with api_client:
            first = await api_client.create_session()
            second = await api_client.create_session()

            sync = SessionSynchronizer(api_client, policy=policy)
            await sync.open_session(first.id)
            sync.add_message(Role.USER, "What is the capital of France?")
            sync.add_message(Role.ASSISTANT, "Paris.")
            await sync.flush()
            sync.add_message(Role.USER, "And of Italy?")

            await sync.switch_session(second.id)
            await sync.close()

            stored = await api_client.get_session(first.id)
            assert [m.content for m in stored.messages] == [
                "What is the capital of France?", "Paris.", "And of Italy?",
            ]
            assert stored.message_count == 3
            assert stored.title == "What is the capital of France?"
            assert sync.messages == []
