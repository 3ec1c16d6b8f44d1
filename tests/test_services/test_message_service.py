import asyncio

import pytest
from sqlalchemy import func, select

from buddynet.models import Conversation, Message
from buddynet.services.exceptions import (
    BusinessRuleError,
    ConversationNotFoundError,
    EmptyMessageError,
    NotParticipantError,
    UnauthenticatedError,
)
from buddynet.services.message_service import MessageService
from test_helpers import make_buddies

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def conversation(conversation_service, users, db_test_session_manager):
    alice, bob = users["alice"], users["bob"]
    await make_buddies(db_test_session_manager, alice, bob)
    return await conversation_service.ensure_conversation(alice, bob.id)


async def count_messages(session_maker) -> int:
    async with session_maker() as session:
        result = await session.execute(select(func.count()).select_from(Message))
        return result.scalar_one()


async def test_send_appends_with_sequence_and_summary(
    message_service, conversation_service, conversation, users
):
    alice = users["alice"]

    message = await message_service.send(conversation.id, alice, "  Tennis at 6?  ")

    assert message.text == "Tennis at 6?"
    assert message.sequence == 1
    assert message.sender_id == alice.id
    refreshed = await conversation_service.get_conversation(conversation.id, alice)
    assert refreshed.last_message == "Tennis at 6?"
    assert refreshed.last_message_by_user_id == alice.id
    assert refreshed.last_message_at is not None


async def test_messages_come_back_in_send_order(
    message_service, conversation_service, conversation, users
):
    alice, bob = users["alice"], users["bob"]
    await message_service.send(conversation.id, alice, "M1")
    await message_service.send(conversation.id, bob, "M2")
    await message_service.send(conversation.id, alice, "M3")

    messages = await message_service.get_messages(conversation.id, bob)

    assert [m.text for m in messages] == ["M1", "M2", "M3"]
    assert [m.sequence for m in messages] == [1, 2, 3]
    summary = await conversation_service.get_conversation(conversation.id, bob)
    assert summary.last_message == "M3"
    assert summary.last_message_by_user_id == alice.id


async def test_conversation_list_shows_latest_message_on_same_session(
    message_service, conversation_service, conversation, users
):
    alice, bob = users["alice"], users["bob"]
    # Loads the conversation into the shared session before any message exists
    before = await conversation_service.get_user_conversations(alice)
    assert before[0].last_message is None

    await message_service.send(conversation.id, alice, "M1")
    await message_service.send(conversation.id, bob, "M2")
    await message_service.send(conversation.id, alice, "M3")

    summaries = await conversation_service.get_user_conversations(alice)
    assert summaries[0].last_message == "M3"
    assert summaries[0].last_message_by_user_id == alice.id


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
async def test_empty_message_writes_nothing(
    message_service, conversation, users, db_test_session_manager, text
):
    with pytest.raises(EmptyMessageError):
        await message_service.send(conversation.id, users["alice"], text)

    assert await count_messages(db_test_session_manager) == 0
    async with db_test_session_manager() as session:
        stored = await session.get(Conversation, conversation.id)
    assert stored.last_message is None
    assert stored.last_message_at is None
    assert stored.last_message_by_user_id is None
    assert stored.message_count == 0


async def test_overlong_message_is_rejected(
    db_session, live_channel, conversation, users
):
    from buddynet.repositories.conversation_repository import ConversationRepository
    from buddynet.repositories.message_repository import MessageRepository

    service = MessageService(
        message_repository=MessageRepository(db_session),
        conversation_repository=ConversationRepository(db_session),
        channel=live_channel,
        max_length=5,
    )

    with pytest.raises(BusinessRuleError):
        await service.send(conversation.id, users["alice"], "too long")
    message = await service.send(conversation.id, users["alice"], "short")
    assert message.sequence == 1


async def test_non_participant_cannot_send_or_read(
    message_service, conversation, users, db_test_session_manager
):
    carol = users["carol"]

    with pytest.raises(NotParticipantError):
        await message_service.send(conversation.id, carol, "hi")
    with pytest.raises(NotParticipantError):
        await message_service.get_messages(conversation.id, carol)
    with pytest.raises(NotParticipantError):
        await message_service.stream_messages(conversation.id, carol)
    assert await count_messages(db_test_session_manager) == 0


async def test_send_to_missing_conversation(message_service, users):
    with pytest.raises(ConversationNotFoundError):
        await message_service.send("nope_nope", users["alice"], "hello?")


async def test_send_requires_identity(message_service, conversation):
    with pytest.raises(UnauthenticatedError):
        await message_service.send(conversation.id, None, "hi")


async def test_stream_messages_delivers_full_thread_on_each_send(
    message_service, conversation, users
):
    alice, bob = users["alice"], users["bob"]

    async with await message_service.stream_messages(conversation.id, bob) as stream:
        assert await anext(stream) == []

        await message_service.send(conversation.id, alice, "first")
        snapshot = await asyncio.wait_for(anext(stream), timeout=1)
        assert [m.text for m in snapshot] == ["first"]

        await message_service.send(conversation.id, bob, "second")
        snapshot = await asyncio.wait_for(anext(stream), timeout=1)
        assert [m.text for m in snapshot] == ["first", "second"]


async def test_send_refreshes_both_participants_conversation_lists(
    message_service, conversation_service, conversation, users
):
    alice, bob = users["alice"], users["bob"]
    feed = await conversation_service.list_conversations_for(alice)
    initial = await anext(feed)
    assert initial[0].last_message is None

    await message_service.send(conversation.id, bob, "see you there")

    snapshot = await asyncio.wait_for(anext(feed), timeout=1)
    assert snapshot[0].last_message == "see you there"
    assert snapshot[0].other_user.id == bob.id
    feed.cancel()
