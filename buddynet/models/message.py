from sqlalchemy import Column, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from .base import BaseModel


class Message(BaseModel):
    __tablename__ = "messages"

    # updated_at, deleted_at are inherited but messages are immutable
    text = Column(Text, nullable=False)
    conversation_id = Column(Text, ForeignKey("conversations.id"), nullable=False)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    # Position in the conversation, assigned from Conversation.message_count
    sequence = Column(Integer, nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", back_populates="messages", foreign_keys=[sender_id])

    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "sequence", name="uq_message_conversation_sequence"
        ),
    )
