from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .profile import ProfileSummary


class ConversationCreateRequest(BaseModel):
    buddy_id: UUID


class ConversationResponse(BaseModel):
    id: str
    participants: list[UUID]
    last_message: str | None = None
    last_message_at: datetime | None = None
    last_message_by_user_id: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationSummary(ConversationResponse):
    """A conversation as listed for one participant."""

    other_user: ProfileSummary

    @classmethod
    def for_user(cls, conversation, user_id: UUID) -> "ConversationSummary":
        other = (
            conversation.user_b
            if conversation.user_a_id == user_id
            else conversation.user_a
        )
        return cls(
            id=conversation.id,
            participants=conversation.participants,
            last_message=conversation.last_message,
            last_message_at=conversation.last_message_at,
            last_message_by_user_id=conversation.last_message_by_user_id,
            created_at=conversation.created_at,
            other_user=ProfileSummary.from_user(other),
        )
