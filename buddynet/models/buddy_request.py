from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from buddynet.schemas.buddy_request import BuddyRequestStatus
from .base import BaseModel


class BuddyRequest(BaseModel):
    __tablename__ = "buddy_requests"

    from_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    to_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status = Column(
        SQLAlchemyEnum(BuddyRequestStatus),
        nullable=False,
        default=BuddyRequestStatus.PENDING,
    )
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    sender = relationship(
        "User", back_populates="sent_buddy_requests", foreign_keys=[from_user_id]
    )
    recipient = relationship(
        "User", back_populates="received_buddy_requests", foreign_keys=[to_user_id]
    )

    # No uniqueness on (from, to, pending): the duplicate check is a query
    __table_args__ = (
        CheckConstraint("from_user_id != to_user_id", name="ck_buddy_request_not_self"),
        Index("ix_buddy_requests_to_status", "to_user_id", "status"),
        Index("ix_buddy_requests_from_status", "from_user_id", "status"),
    )
