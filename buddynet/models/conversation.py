from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from .base import BaseModel


class Conversation(BaseModel):
    __tablename__ = "conversations"

    # Deterministic key derived from the participant pair
    id = Column(Text, primary_key=True)
    user_a_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    user_b_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)

    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_message_by_user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    message_count = Column(Integer, nullable=False, default=0, server_default="0")

    user_a = relationship("User", foreign_keys=[user_a_id])
    user_b = relationship("User", foreign_keys=[user_b_id])
    last_message_by = relationship("User", foreign_keys=[last_message_by_user_id])
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.sequence",
    )

    __table_args__ = (
        Index("ix_conversations_user_a", "user_a_id"),
        Index("ix_conversations_user_b", "user_b_id"),
        Index("ix_conversations_last_message_at", "last_message_at"),
    )

    @property
    def participants(self) -> list:
        return [self.user_a_id, self.user_b_id]

    def has_participant(self, user_id) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)
