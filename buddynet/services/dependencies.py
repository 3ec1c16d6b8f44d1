from fastapi import Depends

from buddynet.db import async_session_maker
from buddynet.live.channel import LiveUpdateChannel
from buddynet.repositories.buddy_request_repository import BuddyRequestRepository
from buddynet.repositories.conversation_repository import ConversationRepository
from buddynet.repositories.dependencies import (
    get_buddy_request_repository,
    get_conversation_repository,
    get_message_repository,
    get_user_repository,
)
from buddynet.repositories.message_repository import MessageRepository
from buddynet.repositories.user_repository import UserRepository

from .connection_service import ConnectionService
from .conversation_service import ConversationService
from .message_service import MessageService
from .provider import ServiceProvider


def get_live_channel() -> LiveUpdateChannel:
    """Provides the process-wide live update channel."""
    return ServiceProvider.get_service(
        LiveUpdateChannel, session_factory=async_session_maker
    )


def get_connection_service(
    request_repo: BuddyRequestRepository = Depends(get_buddy_request_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    channel: LiveUpdateChannel = Depends(get_live_channel),
) -> ConnectionService:
    """Provides a ConnectionService bound to the request's session."""
    return ConnectionService(
        buddy_request_repository=request_repo,
        user_repository=user_repo,
        channel=channel,
    )


def get_conversation_service(
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    channel: LiveUpdateChannel = Depends(get_live_channel),
) -> ConversationService:
    return ConversationService(
        conversation_repository=conv_repo,
        user_repository=user_repo,
        channel=channel,
    )


def get_message_service(
    msg_repo: MessageRepository = Depends(get_message_repository),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    channel: LiveUpdateChannel = Depends(get_live_channel),
) -> MessageService:
    """Provides a MessageService sharing one session with its repositories."""
    return MessageService(
        message_repository=msg_repo,
        conversation_repository=conv_repo,
        channel=channel,
    )
