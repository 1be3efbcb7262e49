"""
Unit tests for message merging and the MessageSink.
"""

import asyncio
from datetime import timedelta

import pytest

from chatsync.core.errors import Forbidden, NotFound
from chatsync.core.message_sink import MessageSink, derive_title, merge_messages
from chatsync.models import ChatSession, Message, MessageIn, Role, SessionKind
from chatsync.models.session import utcnow
from chatsync.storage import DurableSessionStore, MemorySessionStore, SessionRouter


def msg(message_id: str, content: str = "text", role: Role = Role.USER) -> Message:
    return Message(id=message_id, role=role, content=content)


def msg_in(message_id: str | None, content: str = "text", role: Role = Role.USER) -> MessageIn:
    return MessageIn(id=message_id, role=role, content=content)


@pytest.fixture
def router(storage):
    return SessionRouter(ephemeral=MemorySessionStore(), durable=DurableSessionStore(storage))


async def make_session(router, owner_id="user-1", kind=SessionKind.EPHEMERAL, title="New Chat"):
    store = router.store_for(kind)
    now = utcnow()
    session = ChatSession(
        id=store.new_id(), owner_id=owner_id, kind=kind, title=title,
        messages=[], message_count=0, created_at=now, updated_at=now,
    )
    await store.put(session)
    return session


class TestMergeMessages:
    """Tests for the id-union merge."""

    def test_union_keeps_existing_and_appends_new(self):
        merged, added = merge_messages([msg("m1"), msg("m2")], [msg("m1"), msg("m2"), msg("m3")])
        assert [m.id for m in merged] == ["m1", "m2", "m3"]
        assert [m.id for m in added] == ["m3"]

    def test_stored_copy_wins_over_resubmitted(self):
        merged, _ = merge_messages([msg("m1", "original")], [msg("m1", "edited")])
        assert merged[0].content == "original"

    def test_duplicates_inside_batch_collapse(self):
        merged, added = merge_messages([], [msg("a"), msg("b"), msg("a")])
        assert [m.id for m in merged] == ["a", "b"]
        assert len(added) == 2

    def test_disjoint_batches_commute_as_sets(self):
        first, _ = merge_messages([msg("x")], [msg("a"), msg("b")])
        first, _ = merge_messages(first, [msg("c")])
        second, _ = merge_messages([msg("x")], [msg("c")])
        second, _ = merge_messages(second, [msg("a"), msg("b")])
        assert {m.id for m in first} == {m.id for m in second}

    def test_empty_incoming(self):
        merged, added = merge_messages([msg("m1")], [])
        assert [m.id for m in merged] == ["m1"]
        assert added == []


class TestDeriveTitle:

    def test_first_user_message_first_line(self):
        messages = [msg("a", "hello assistant", Role.ASSISTANT), msg("b", "  Plan a trip\nto Bali")]
        assert derive_title(messages, 50) == "Plan a trip"

    def test_truncated(self):
        assert derive_title([msg("a", "x" * 80)], 10) == "x" * 10 + "..."

    def test_no_user_message(self):
        assert derive_title([msg("a", "hi", Role.ASSISTANT)], 50) is None


class TestMessageSink:
    """Tests for single and batch appends."""

    @pytest.mark.asyncio
    async def test_append_single_then_duplicate_is_noop(self, router):
        session = await make_session(router)
        sink = MessageSink(router)

        stored, created = await sink.append_message(
            SessionKind.EPHEMERAL, session.id, "user-1", msg_in("a", "hi")
        )
        assert created is True

        again, created = await sink.append_message(
            SessionKind.EPHEMERAL, session.id, "user-1", msg_in("a", "different content")
        )
        assert created is False
        assert again == stored
        assert again.content == "hi"

        reloaded = await router.store_for(SessionKind.EPHEMERAL).get(session.id)
        assert [m.id for m in reloaded.messages] == ["a"]
        assert reloaded.message_count == 1

    @pytest.mark.asyncio
    async def test_append_without_id_gets_generated_id(self, router):
        session = await make_session(router)
        stored, created = await MessageSink(router).append_message(
            SessionKind.EPHEMERAL, session.id, "user-1", msg_in(None, "hi")
        )
        assert created is True
        assert stored.id

    @pytest.mark.asyncio
    async def test_batch_union_and_order(self, router):
        session = await make_session(router)
        sink = MessageSink(router)

        first = await sink.append_messages(
            SessionKind.EPHEMERAL, session.id, "user-1", [msg_in("a"), msg_in("b")]
        )
        assert (first.message_count, first.added) == (2, 2)

        second = await sink.append_messages(
            SessionKind.EPHEMERAL, session.id, "user-1", [msg_in("b"), msg_in("c")]
        )
        assert (second.message_count, second.added) == (3, 1)

        stored = await router.store_for(SessionKind.EPHEMERAL).get(session.id)
        assert [m.id for m in stored.messages] == ["a", "b", "c"]
        assert stored.message_count == len(stored.messages)

    @pytest.mark.asyncio
    async def test_batch_messages_without_id_always_appended(self, router):
        session = await make_session(router)
        sink = MessageSink(router)
        await sink.append_messages(SessionKind.EPHEMERAL, session.id, "user-1", [msg_in(None)])
        result = await sink.append_messages(SessionKind.EPHEMERAL, session.id, "user-1", [msg_in(None)])
        assert result.message_count == 2

    @pytest.mark.asyncio
    async def test_duplicate_only_batch_leaves_updated_at(self, router):
        session = await make_session(router)
        sink = MessageSink(router)
        await sink.append_messages(SessionKind.EPHEMERAL, session.id, "user-1", [msg_in("a")])
        before = (await router.store_for(SessionKind.EPHEMERAL).get(session.id)).updated_at

        result = await sink.append_messages(SessionKind.EPHEMERAL, session.id, "user-1", [msg_in("a")])
        after = (await router.store_for(SessionKind.EPHEMERAL).get(session.id)).updated_at
        assert result.added == 0
        assert after == before

    @pytest.mark.asyncio
    async def test_append_refreshes_updated_at(self, router):
        session = await make_session(router)
        store = router.store_for(SessionKind.EPHEMERAL)
        session.updated_at = utcnow() - timedelta(hours=1)
        await store.put(session)

        await MessageSink(router).append_messages(
            SessionKind.EPHEMERAL, session.id, "user-1", [msg_in("a")]
        )
        assert (await store.get(session.id)).updated_at > session.updated_at

    @pytest.mark.asyncio
    async def test_title_derived_from_first_user_message(self, router):
        session = await make_session(router, title="New Chat")
        sink = MessageSink(router, default_title="New Chat")
        await sink.append_messages(
            SessionKind.EPHEMERAL, session.id, "user-1",
            [msg_in("a", "How do I bake bread?"), msg_in("b", "Like this", Role.ASSISTANT)],
        )
        stored = await router.store_for(SessionKind.EPHEMERAL).get(session.id)
        assert stored.title == "How do I bake bread?"

    @pytest.mark.asyncio
    async def test_custom_title_not_overwritten(self, router):
        session = await make_session(router, title="Recipes")
        await MessageSink(router, default_title="New Chat").append_message(
            SessionKind.EPHEMERAL, session.id, "user-1", msg_in("a", "How do I bake bread?")
        )
        stored = await router.store_for(SessionKind.EPHEMERAL).get(session.id)
        assert stored.title == "Recipes"

    @pytest.mark.asyncio
    async def test_durable_session_merge(self, router):
        session = await make_session(router, kind=SessionKind.DURABLE)
        sink = MessageSink(router)
        await sink.append_messages(SessionKind.DURABLE, session.id, "user-1", [msg_in("a")])
        result = await sink.append_messages(
            SessionKind.DURABLE, session.id, "user-1", [msg_in("a"), msg_in("b")]
        )
        assert result.message_count == 2

    @pytest.mark.asyncio
    async def test_unknown_session(self, router):
        with pytest.raises(NotFound):
            await MessageSink(router).append_message(
                SessionKind.EPHEMERAL, "6f1c2a8e-3b0d-4c55-9a43-5d2f0e7b9c10", "user-1", msg_in("a")
            )

    @pytest.mark.asyncio
    async def test_other_owner_forbidden(self, router):
        session = await make_session(router, owner_id="user-1")
        with pytest.raises(Forbidden):
            await MessageSink(router).append_messages(
                SessionKind.EPHEMERAL, session.id, "user-2", [msg_in("a")]
            )


class YieldingMemoryStore(MemorySessionStore):
    """Memory store that gives up the loop between read and write like real I/O."""

    async def get(self, session_id):
        await asyncio.sleep(0)
        return await super().get(session_id)

    async def put(self, session):
        await asyncio.sleep(0)
        await super().put(session)


class TestConcurrentAppends:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", list(SessionKind))
    async def test_racing_batches_end_as_union(self, storage, kind):
        router = SessionRouter(ephemeral=YieldingMemoryStore(), durable=DurableSessionStore(storage))
        session = await make_session(router, kind=kind)
        sink = MessageSink(router)

        # Batch i carries ids i and i+1, so neighbours overlap by one message
        batches = [[msg_in(f"m{i}"), msg_in(f"m{i + 1}")] for i in range(10)]
        await asyncio.gather(*(
            sink.append_messages(kind, session.id, "user-1", batch) for batch in batches
        ))

        stored = await router.store_for(kind).get(session.id)
        assert {m.id for m in stored.messages} == {f"m{i}" for i in range(11)}
        assert len(stored.messages) == 11
        assert stored.message_count == len(stored.messages)
