import uuid

from fastapi_users.db import SQLAlchemyBaseUserTable
from sqlalchemy import JSON, Column, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


# SQLAlchemyBaseUserTable contributes email, hashed_password and the is_* flags
class User(SQLAlchemyBaseUserTable[uuid.UUID], BaseModel):
    __tablename__ = "users"

    username = Column(
        Text,
        unique=True,
        nullable=False,
        default=lambda: f"user_{uuid.uuid4()}",
    )
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    favorite_sports = Column(JSON, nullable=False, default=list)
    profile_image_url = Column(Text, nullable=True)

    buddy_links = relationship(
        "BuddyLink",
        back_populates="user",
        foreign_keys="BuddyLink.user_id",
    )
    sent_buddy_requests = relationship(
        "BuddyRequest",
        back_populates="sender",
        foreign_keys="BuddyRequest.from_user_id",
    )
    received_buddy_requests = relationship(
        "BuddyRequest",
        back_populates="recipient",
        foreign_keys="BuddyRequest.to_user_id",
    )
    messages = relationship(
        "Message",
        back_populates="sender",
        foreign_keys="Message.sender_id",
    )

    @property
    def display_name(self) -> str:
        full_name = " ".join(
            part for part in (self.first_name, self.last_name) if part
        ).strip()
        return full_name or self.username
