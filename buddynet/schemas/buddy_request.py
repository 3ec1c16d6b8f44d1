import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .profile import ProfileSummary


class BuddyRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class BuddyRequestCreate(BaseModel):
    to_user_id: UUID


class BuddyRequestUpdate(BaseModel):
    status: BuddyRequestStatus
    # Optional cross-check of the sender when accepting
    from_user_id: UUID | None = None


class BuddyRequestResponse(BaseModel):
    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    status: BuddyRequestStatus
    created_at: datetime
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class IncomingBuddyRequest(BaseModel):
    id: UUID
    from_user_id: UUID
    created_at: datetime
    sender: ProfileSummary

    @classmethod
    def from_request(cls, request) -> "IncomingBuddyRequest":
        return cls(
            id=request.id,
            from_user_id=request.from_user_id,
            created_at=request.created_at,
            sender=ProfileSummary.from_user(request.sender),
        )


class OutgoingPendingTargets(BaseModel):
    pending_user_ids: list[UUID]
