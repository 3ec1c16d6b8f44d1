import uuid
from typing import Sequence
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from buddynet.models import BuddyLink, User

from .base import BaseRepository


class UserRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Retrieves a user by their ID."""
        stmt = select(User).filter(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def add_buddy(
        self, user_id: UUID, buddy_id: UUID, request_id: UUID | None = None
    ) -> bool:
        """Adds ``buddy_id`` to the user's buddy set if it is not already there.

        Returns True if a new link was written.
        """
        return await self.insert_if_absent(
            BuddyLink,
            ("user_id", "buddy_id"),
            id=uuid.uuid4(),
            user_id=user_id,
            buddy_id=buddy_id,
            request_id=request_id,
        )

    async def is_buddy(self, user_id: UUID, other_user_id: UUID) -> bool:
        """Checks whether ``other_user_id`` is in the user's buddy set."""
        stmt = select(
            exists().where(
                BuddyLink.user_id == user_id,
                BuddyLink.buddy_id == other_user_id,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_buddies(self, user_id: UUID) -> Sequence[User]:
        """Lists the users in the given user's buddy set, ordered by username."""
        stmt = (
            select(User)
            .join(BuddyLink, BuddyLink.buddy_id == User.id)
            .where(BuddyLink.user_id == user_id)
            .order_by(User.username)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
