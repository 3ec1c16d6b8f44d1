import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from buddynet.live import topics
from buddynet.live.channel import LiveUpdateChannel, Subscription
from buddynet.models import Conversation, User
from buddynet.repositories.conversation_repository import ConversationRepository
from buddynet.repositories.user_repository import UserRepository
from buddynet.schemas.conversation import ConversationSummary

from .exceptions import (
    BusinessRuleError,
    ConversationNotFoundError,
    NotBuddiesError,
    UnavailableError,
    UserNotFoundError,
)
from .identity import require_identity

logger = logging.getLogger(__name__)

CONVERSATION_ID_SEPARATOR = "_"


def conversation_id_for(user_a, user_b) -> str:
    """
    Derives the conversation key for an unordered pair of users.

    Both sides compute the same value independently, which is what makes
    "create if absent" safe when they race to open the conversation.
    """
    first, second = sorted((str(user_a), str(user_b)))
    if first == second:
        raise ValueError("A conversation needs two distinct users.")
    if CONVERSATION_ID_SEPARATOR in first or CONVERSATION_ID_SEPARATOR in second:
        raise ValueError(
            f"User IDs must not contain '{CONVERSATION_ID_SEPARATOR}'."
        )
    return f"{first}{CONVERSATION_ID_SEPARATOR}{second}"


class ConversationService:
    def __init__(
        self,
        conversation_repository: ConversationRepository,
        user_repository: UserRepository,
        channel: LiveUpdateChannel,
    ):
        self.conv_repo = conversation_repository
        self.user_repo = user_repository
        self.channel = channel
        self.session = conversation_repository.session

    async def ensure_conversation(
        self, current_user: User | None, other_user_id: UUID
    ) -> Conversation:
        """
        Returns the caller's conversation with ``other_user_id``, creating it on
        first contact. Creation requires the other user to be in the caller's
        buddy set; an existing conversation is returned without re-checking.
        """
        user = require_identity(current_user)
        if user.id == other_user_id:
            raise BusinessRuleError("Cannot start a conversation with yourself.")

        conversation_id = conversation_id_for(user.id, other_user_id)
        try:
            existing = await self.conv_repo.get_conversation_by_id(conversation_id)
            if existing:
                return existing

            other_user = await self.user_repo.get_user_by_id(other_user_id)
            if not other_user:
                raise UserNotFoundError(f"User with ID '{other_user_id}' not found.")

            if not await self.user_repo.is_buddy(user.id, other_user.id):
                raise NotBuddiesError()

            user_a_id, user_b_id = sorted((user.id, other_user.id), key=str)
            created = await self.conv_repo.create_conversation_if_absent(
                conversation_id, user_a_id, user_b_id
            )
            await self.session.commit()
            conversation = await self.conv_repo.get_conversation_by_id(conversation_id)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error ensuring conversation {conversation_id}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to open conversation.")

        if conversation is None:
            raise UnavailableError("Conversation was not readable after creation.")

        if created:
            logger.info(f"Conversation {conversation_id} created by {user.id}")
            self.channel.publish(
                topics.user_conversations(user_a_id),
                topics.user_conversations(user_b_id),
            )
        else:
            logger.info(f"Conversation {conversation_id} was created concurrently")
        return conversation

    async def get_conversation(
        self, conversation_id: str, current_user: User | None
    ) -> Conversation:
        """Fetches a conversation the caller participates in."""
        user = require_identity(current_user)
        try:
            conversation = await self.conv_repo.get_conversation_by_id(conversation_id)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error fetching conversation {conversation_id}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to fetch conversation.")

        if not conversation or not conversation.has_participant(user.id):
            raise ConversationNotFoundError(
                f"Conversation '{conversation_id}' not found."
            )
        return conversation

    async def get_user_conversations(
        self, current_user: User | None
    ) -> list[ConversationSummary]:
        user = require_identity(current_user)
        try:
            return await user_conversations_query(user.id)(self.session)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error listing conversations for user {user.id}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to list conversations.")

    async def list_conversations_for(
        self, current_user: User | None
    ) -> Subscription[list[ConversationSummary]]:
        """Live view of the caller's conversations, most recent activity first."""
        user = require_identity(current_user)
        return self.channel.subscribe(
            topics.user_conversations(user.id), user_conversations_query(user.id)
        )


def user_conversations_query(user_id: UUID):
    async def query(session) -> list[ConversationSummary]:
        conversations = await ConversationRepository(session).list_user_conversations(
            user_id
        )
        return [
            ConversationSummary.for_user(conversation, user_id)
            for conversation in conversations
        ]

    return query
