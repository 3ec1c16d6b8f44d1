import logging

from fastapi import APIRouter, Depends, status

from buddynet.api.common import BaseRouter
from buddynet.auth_config import current_active_user
from buddynet.logic.conversation_processing import (
    handle_get_conversation,
    handle_get_messages,
    handle_list_conversations,
    handle_open_conversation,
    handle_send_message,
)
from buddynet.models import User
from buddynet.schemas.conversation import (
    ConversationCreateRequest,
    ConversationResponse,
    ConversationSummary,
)
from buddynet.schemas.message import MessageCreateRequest, MessageResponse
from buddynet.services.conversation_service import ConversationService
from buddynet.services.dependencies import (
    get_conversation_service,
    get_message_service,
)
from buddynet.services.message_service import MessageService

logger = logging.getLogger(__name__)
conversations_router_instance = APIRouter(prefix="/conversations")
router = BaseRouter(
    router=conversations_router_instance, default_tags=["conversations"]
)


@router.get("", response_model=list[ConversationSummary])
async def list_conversations(
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    """The current user's conversations, most recent activity first."""
    return await handle_list_conversations(current_user=user, conv_service=conv_service)


@router.post("", response_model=ConversationResponse)
async def open_conversation(
    request_data: ConversationCreateRequest,
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    """Returns the conversation with a buddy, creating it on first contact."""
    conversation = await handle_open_conversation(
        buddy_id=request_data.buddy_id, current_user=user, conv_service=conv_service
    )
    logger.info(f"Conversation opened: {conversation.id}")
    return conversation


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    return await handle_get_conversation(
        conversation_id=conversation_id,
        requesting_user=user,
        conv_service=conv_service,
    )


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def get_messages(
    conversation_id: str,
    user: User = Depends(current_active_user),
    msg_service: MessageService = Depends(get_message_service),
):
    """The whole thread in send order."""
    return await handle_get_messages(
        conversation_id=conversation_id, current_user=user, msg_service=msg_service
    )


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    message_data: MessageCreateRequest,
    user: User = Depends(current_active_user),
    msg_service: MessageService = Depends(get_message_service),
):
    return await handle_send_message(
        conversation_id=conversation_id,
        text=message_data.text,
        current_user=user,
        msg_service=msg_service,
    )
