import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buddynet.models import Message
from buddynet.repositories.base import BaseRepository


class MessageRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_message(
        self,
        conversation_id: str,
        sender_id: uuid.UUID,
        text: str,
        sequence: int,
        created_at: datetime,
    ) -> Message:
        """Creates and adds a new message to the session."""
        new_message = Message(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text,
            sequence=sequence,
            created_at=created_at,
        )
        self.session.add(new_message)
        await self.session.flush()
        return new_message

    async def get_messages_by_conversation(self, conversation_id: str) -> list[Message]:
        """Retrieves all messages for a conversation in ledger order."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.sequence.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
