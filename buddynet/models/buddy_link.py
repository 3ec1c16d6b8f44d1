from sqlalchemy import Column, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from .base import BaseModel


class BuddyLink(BaseModel):
    """One directed edge of the buddy relation: ``buddy_id in user.buddies``.

    Rows are only ever inserted with an "insert if absent" statement, so the
    set of links per user grows monotonically and retries are harmless.
    """

    __tablename__ = "buddy_links"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    buddy_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    request_id = Column(
        Uuid(as_uuid=True), ForeignKey("buddy_requests.id"), nullable=True
    )

    user = relationship("User", back_populates="buddy_links", foreign_keys=[user_id])
    buddy = relationship("User", foreign_keys=[buddy_id])
    request = relationship("BuddyRequest", foreign_keys=[request_id])

    __table_args__ = (
        UniqueConstraint("user_id", "buddy_id", name="uq_buddy_link_user_buddy"),
    )
