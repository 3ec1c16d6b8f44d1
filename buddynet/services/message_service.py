import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from buddynet.core.config import settings
from buddynet.live import topics
from buddynet.live.channel import LiveUpdateChannel, Subscription
from buddynet.models import Conversation, Message, User
from buddynet.repositories.conversation_repository import ConversationRepository
from buddynet.repositories.message_repository import MessageRepository
from buddynet.schemas.message import MessageResponse

from .exceptions import (
    BusinessRuleError,
    ConversationNotFoundError,
    EmptyMessageError,
    NotParticipantError,
    UnavailableError,
)
from .identity import require_identity

logger = logging.getLogger(__name__)


class MessageService:
    """Append-only message ledger, one ordered thread per conversation."""

    def __init__(
        self,
        message_repository: MessageRepository,
        conversation_repository: ConversationRepository,
        channel: LiveUpdateChannel,
        max_length: int | None = None,
    ):
        self.msg_repo = message_repository
        self.conv_repo = conversation_repository
        self.channel = channel
        self.max_length = max_length or settings.MESSAGE_MAX_LENGTH
        self.session = message_repository.session

    async def send(
        self, conversation_id: str, current_user: User | None, text: str | None
    ) -> Message:
        """
        Appends a message and mirrors it into the conversation summary.

        The sequence number comes from an atomic counter on the conversation,
        so ordering never depends on client clocks or timestamp resolution.
        """
        sender = require_identity(current_user)
        content = (text or "").strip()
        if not content:
            raise EmptyMessageError()
        if len(content) > self.max_length:
            raise BusinessRuleError(
                f"Message exceeds the maximum length of {self.max_length} characters."
            )

        conversation = await self._get_participant_conversation(conversation_id, sender)

        try:
            sequence = await self.conv_repo.next_message_sequence(conversation.id)
            if sequence is None:
                await self.session.rollback()
                raise ConversationNotFoundError()

            sent_at = datetime.now(timezone.utc)
            message = await self.msg_repo.create_message(
                conversation_id=conversation.id,
                sender_id=sender.id,
                text=content,
                sequence=sequence,
                created_at=sent_at,
            )
            await self.conv_repo.update_last_message(
                conversation.id, content, sent_at, sender.id
            )
            await self.session.commit()
            await self.session.refresh(message)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error sending message to {conversation_id}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to send message.")

        logger.info(
            f"Message #{sequence} appended to {conversation.id} by {sender.id}"
        )
        self.channel.publish(
            topics.conversation_messages(conversation.id),
            *(topics.user_conversations(uid) for uid in conversation.participants),
        )
        return message

    async def get_messages(
        self, conversation_id: str, current_user: User | None
    ) -> list[MessageResponse]:
        reader = require_identity(current_user)
        conversation = await self._get_participant_conversation(conversation_id, reader)
        try:
            return await conversation_messages_query(conversation.id)(self.session)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error reading messages of {conversation_id}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to read messages.")

    async def stream_messages(
        self, conversation_id: str, current_user: User | None
    ) -> Subscription[list[MessageResponse]]:
        """Live view of the whole thread in ledger order."""
        reader = require_identity(current_user)
        conversation = await self._get_participant_conversation(conversation_id, reader)
        return self.channel.subscribe(
            topics.conversation_messages(conversation.id),
            conversation_messages_query(conversation.id),
        )

    async def _get_participant_conversation(
        self, conversation_id: str, user: User
    ) -> Conversation:
        try:
            conversation = await self.conv_repo.get_conversation_by_id(conversation_id)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error fetching conversation {conversation_id}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to fetch conversation.")

        if not conversation:
            raise ConversationNotFoundError(
                f"Conversation '{conversation_id}' not found."
            )
        if not conversation.has_participant(user.id):
            raise NotParticipantError()
        return conversation


def conversation_messages_query(conversation_id: str):
    async def query(session) -> list[MessageResponse]:
        messages = await MessageRepository(session).get_messages_by_conversation(
            conversation_id
        )
        return [MessageResponse.model_validate(message) for message in messages]

    return query
