from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from buddynet.models import Conversation

from .base import BaseRepository


class ConversationRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_conversation_by_id(
        self, conversation_id: str
    ) -> Conversation | None:
        """Retrieves a conversation with both participant profiles loaded."""
        stmt = (
            select(Conversation)
            .filter(Conversation.id == conversation_id)
            .options(
                selectinload(Conversation.user_a),
                selectinload(Conversation.user_b),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_conversation_if_absent(
        self, conversation_id: str, user_a_id: UUID, user_b_id: UUID
    ) -> bool:
        """Creates the conversation record unless it already exists.

        Returns True if this call created it.
        """
        return await self.insert_if_absent(
            Conversation,
            ("id",),
            id=conversation_id,
            user_a_id=user_a_id,
            user_b_id=user_b_id,
            message_count=0,
            created_at=datetime.now(timezone.utc),
        )

    async def list_user_conversations(self, user_id: UUID) -> Sequence[Conversation]:
        """Lists a user's conversations, most recently active first."""
        stmt = (
            select(Conversation)
            .where(
                or_(Conversation.user_a_id == user_id, Conversation.user_b_id == user_id)
            )
            .options(
                selectinload(Conversation.user_a),
                selectinload(Conversation.user_b),
            )
            .order_by(
                Conversation.last_message_at.desc().nullslast(),
                Conversation.created_at.desc(),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def next_message_sequence(self, conversation_id: str) -> int | None:
        """Atomically increments the conversation's message counter.

        Returns the new value, or None if the conversation does not exist.
        """
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(message_count=Conversation.message_count + 1)
            .returning(Conversation.message_count)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_last_message(
        self,
        conversation_id: str,
        text: str,
        sent_at: datetime,
        sender_id: UUID,
    ) -> None:
        """Mirrors the latest message into the conversation summary fields."""
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                last_message=text,
                last_message_at=sent_at,
                last_message_by_user_id=sender_id,
                updated_at=sent_at,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
