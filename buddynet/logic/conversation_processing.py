import logging
from uuid import UUID

from buddynet.models import Conversation, Message, User
from buddynet.schemas.conversation import ConversationSummary
from buddynet.schemas.message import MessageResponse
from buddynet.services.conversation_service import ConversationService
from buddynet.services.exceptions import ServiceError
from buddynet.services.message_service import MessageService

logger = logging.getLogger(__name__)


async def handle_open_conversation(
    buddy_id: UUID,
    current_user: User,
    conv_service: ConversationService,
) -> Conversation:
    """
    Opens the current user's conversation with a buddy, creating it if needed.

    Args:
        buddy_id: The other participant.
        current_user: The user opening the conversation.
        conv_service: The conversation service dependency.

    Returns:
        The existing or newly created conversation.

    Raises:
        BusinessRuleError: If the user targets themselves.
        UserNotFoundError: If the other user does not exist.
        NotBuddiesError: If a new conversation would be opened with a non-buddy.
        UnavailableError: If the data store cannot be reached.
    """
    logger.debug(f"Handler: {current_user.id} opening conversation with {buddy_id}")
    return await conv_service.ensure_conversation(current_user, buddy_id)


async def handle_get_conversation(
    conversation_id: str,
    requesting_user: User,
    conv_service: ConversationService,
) -> Conversation:
    """Retrieves a conversation if the user participates in it."""
    logger.debug(
        f"Handler: Getting conversation {conversation_id} for user {requesting_user.id}"
    )
    try:
        conversation = await conv_service.get_conversation(
            conversation_id, requesting_user
        )
        logger.info(f"Handler: Conversation retrieved: {conversation.id}")
        return conversation
    except ServiceError as e:
        logger.info(f"Handler: Service error getting conversation {conversation_id}: {e}")
        raise


async def handle_list_conversations(
    current_user: User, conv_service: ConversationService
) -> list[ConversationSummary]:
    return await conv_service.get_user_conversations(current_user)


async def handle_send_message(
    conversation_id: str,
    text: str,
    current_user: User,
    msg_service: MessageService,
) -> Message:
    """
    Appends a message to a conversation.

    Raises:
        EmptyMessageError: If the text is empty after trimming.
        BusinessRuleError: If the text is longer than allowed.
        ConversationNotFoundError: If the conversation does not exist.
        NotParticipantError: If the sender is not a participant.
        UnavailableError: If the data store cannot be reached.
    """
    logger.debug(f"Handler: {current_user.id} sending message to {conversation_id}")
    return await msg_service.send(conversation_id, current_user, text)


async def handle_get_messages(
    conversation_id: str, current_user: User, msg_service: MessageService
) -> list[MessageResponse]:
    return await msg_service.get_messages(conversation_id, current_user)
