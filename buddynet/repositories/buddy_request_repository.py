from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from buddynet.models import BuddyRequest
from buddynet.schemas.buddy_request import BuddyRequestStatus

from .base import BaseRepository


class BuddyRequestRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_request(self, from_user_id: UUID, to_user_id: UUID) -> BuddyRequest:
        """Creates a new pending buddy request."""
        new_request = BuddyRequest(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            status=BuddyRequestStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(new_request)
        await self.session.flush()
        await self.session.refresh(new_request)
        return new_request

    async def get_request_by_id(self, request_id: UUID) -> BuddyRequest | None:
        stmt = select(BuddyRequest).filter(BuddyRequest.id == request_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_pending_request(
        self, from_user_id: UUID, to_user_id: UUID
    ) -> BuddyRequest | None:
        """Returns a pending request for the ordered pair, if any."""
        stmt = select(BuddyRequest).filter(
            BuddyRequest.from_user_id == from_user_id,
            BuddyRequest.to_user_id == to_user_id,
            BuddyRequest.status == BuddyRequestStatus.PENDING,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def resolve_request(
        self, request_id: UUID, new_status: BuddyRequestStatus
    ) -> bool:
        """Moves a request out of ``pending`` with a single conditional update.

        Returns False when the request was no longer pending at write time, which
        is how a concurrent accept/reject of the same request is detected.
        """
        if new_status == BuddyRequestStatus.PENDING:
            raise ValueError("A request can only be resolved to a terminal status.")

        now = datetime.now(timezone.utc)
        values = {"status": new_status, "updated_at": now}
        if new_status == BuddyRequestStatus.ACCEPTED:
            values["accepted_at"] = now
        else:
            values["rejected_at"] = now

        stmt = (
            update(BuddyRequest)
            .where(
                BuddyRequest.id == request_id,
                BuddyRequest.status == BuddyRequestStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_incoming_pending(self, user_id: UUID) -> Sequence[BuddyRequest]:
        """Lists pending requests addressed to the user, with sender profiles."""
        stmt = (
            select(BuddyRequest)
            .where(
                BuddyRequest.to_user_id == user_id,
                BuddyRequest.status == BuddyRequestStatus.PENDING,
            )
            .options(selectinload(BuddyRequest.sender))
            .order_by(BuddyRequest.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_outgoing_pending_targets(self, user_id: UUID) -> set[UUID]:
        stmt = select(BuddyRequest.to_user_id).where(
            BuddyRequest.from_user_id == user_id,
            BuddyRequest.status == BuddyRequestStatus.PENDING,
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())
