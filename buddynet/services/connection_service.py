import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from buddynet.live import topics
from buddynet.live.channel import LiveUpdateChannel, Subscription
from buddynet.models import BuddyRequest, User
from buddynet.repositories.buddy_request_repository import BuddyRequestRepository
from buddynet.repositories.user_repository import UserRepository
from buddynet.schemas.buddy_request import BuddyRequestStatus, IncomingBuddyRequest
from buddynet.schemas.profile import ProfileSummary

from .exceptions import (
    AlreadyBuddiesError,
    AlreadyResolvedError,
    BuddyLinkIncompleteError,
    BuddyRequestNotFoundError,
    BusinessRuleError,
    DuplicateRequestError,
    UnavailableError,
    UserNotFoundError,
)
from .identity import require_identity

logger = logging.getLogger(__name__)


class ConnectionService:
    """Owns the buddy request lifecycle and the buddy relation it produces."""

    def __init__(
        self,
        buddy_request_repository: BuddyRequestRepository,
        user_repository: UserRepository,
        channel: LiveUpdateChannel,
    ):
        self.request_repo = buddy_request_repository
        self.user_repo = user_repository
        self.channel = channel
        self.session = buddy_request_repository.session

    async def send_request(
        self, current_user: User | None, to_user_id: UUID
    ) -> BuddyRequest:
        """
        Creates a pending request from the caller to ``to_user_id``.

        The duplicate check and the insert are separate statements, so two
        simultaneous sends can both succeed. Accept/reject resolve requests by
        ID and tolerate such duplicates.
        """
        sender = require_identity(current_user)
        if sender.id == to_user_id:
            raise BusinessRuleError("Cannot send a buddy request to yourself.")

        try:
            recipient = await self.user_repo.get_user_by_id(to_user_id)
            if not recipient:
                raise UserNotFoundError(f"User with ID '{to_user_id}' not found.")

            if await self.user_repo.is_buddy(sender.id, recipient.id):
                raise AlreadyBuddiesError()

            existing = await self.request_repo.find_pending_request(
                from_user_id=sender.id, to_user_id=recipient.id
            )
            if existing:
                raise DuplicateRequestError()

            new_request = await self.request_repo.create_request(
                from_user_id=sender.id, to_user_id=recipient.id
            )
            await self.session.commit()
            await self.session.refresh(new_request)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error sending buddy request: {e}", exc_info=True)
            raise UnavailableError("Failed to send buddy request.")

        logger.info(
            f"Buddy request {new_request.id} sent from {sender.id} to {recipient.id}"
        )
        self.channel.publish(
            topics.incoming_requests(recipient.id), topics.outgoing_requests(sender.id)
        )
        return new_request

    async def accept_request(
        self,
        request_id: UUID,
        current_user: User | None,
        from_user_id: UUID | None = None,
    ) -> BuddyRequest:
        """
        Accepts a request addressed to the caller and links both users.

        The status change is committed first and sticks. The two buddy-set
        inserts follow as independent writes; if either fails the call raises
        BuddyLinkIncompleteError and ``repair_buddy_link`` can finish the job.
        """
        recipient = require_identity(current_user)
        request = await self._get_request_for_recipient(request_id, recipient)
        if from_user_id is not None and request.from_user_id != from_user_id:
            raise BuddyRequestNotFoundError()

        await self._resolve(request, BuddyRequestStatus.ACCEPTED)
        await self._link_buddies(request)
        return request

    async def reject_request(
        self, request_id: UUID, current_user: User | None
    ) -> BuddyRequest:
        """Rejects a request addressed to the caller. Buddy sets are untouched."""
        recipient = require_identity(current_user)
        request = await self._get_request_for_recipient(request_id, recipient)
        await self._resolve(request, BuddyRequestStatus.REJECTED)
        return request

    async def repair_buddy_link(
        self, request_id: UUID, current_user: User | None
    ) -> BuddyRequest:
        """Re-applies the buddy inserts of an accepted request. Idempotent."""
        caller = require_identity(current_user)
        request = await self._load_request(request_id)
        if not request or caller.id not in (request.from_user_id, request.to_user_id):
            raise BuddyRequestNotFoundError()
        if request.status != BuddyRequestStatus.ACCEPTED:
            raise BusinessRuleError(
                f"Only accepted requests can be repaired, not '{request.status.value}'."
            )

        await self._link_buddies(request)
        return request

    async def get_incoming_requests(
        self, current_user: User | None
    ) -> list[IncomingBuddyRequest]:
        user = require_identity(current_user)
        return await self._read(incoming_requests_query(user.id))

    async def get_outgoing_pending_targets(self, current_user: User | None) -> set[UUID]:
        user = require_identity(current_user)
        return await self._read(outgoing_targets_query(user.id))

    async def get_buddies(self, current_user: User | None) -> list[ProfileSummary]:
        user = require_identity(current_user)
        return await self._read(buddies_query(user.id))

    async def list_incoming(
        self, current_user: User | None
    ) -> Subscription[list[IncomingBuddyRequest]]:
        """Live view of pending requests addressed to the caller."""
        user = require_identity(current_user)
        return self.channel.subscribe(
            topics.incoming_requests(user.id), incoming_requests_query(user.id)
        )

    async def list_outgoing_pending_targets(
        self, current_user: User | None
    ) -> Subscription[set[UUID]]:
        """Live view of the users the caller has a pending request toward."""
        user = require_identity(current_user)
        return self.channel.subscribe(
            topics.outgoing_requests(user.id), outgoing_targets_query(user.id)
        )

    async def list_buddies(
        self, current_user: User | None
    ) -> Subscription[list[ProfileSummary]]:
        user = require_identity(current_user)
        return self.channel.subscribe(topics.buddies(user.id), buddies_query(user.id))

    async def _load_request(self, request_id: UUID) -> BuddyRequest | None:
        try:
            return await self.request_repo.get_request_by_id(request_id)
        except SQLAlchemyError as e:
            logger.error(f"Database error loading request {request_id}: {e}", exc_info=True)
            raise UnavailableError("Failed to load buddy request.")

    async def _get_request_for_recipient(
        self, request_id: UUID, recipient: User
    ) -> BuddyRequest:
        request = await self._load_request(request_id)
        # Requests addressed to someone else are reported as missing
        if not request or request.to_user_id != recipient.id:
            raise BuddyRequestNotFoundError(
                f"Buddy request '{request_id}' not found."
            )
        if request.status != BuddyRequestStatus.PENDING:
            raise AlreadyResolvedError(
                f"Buddy request is already '{request.status.value}'."
            )
        return request

    async def _resolve(self, request: BuddyRequest, status: BuddyRequestStatus) -> None:
        # Rollback expires the instance, so keep the key at hand
        request_id = request.id
        try:
            resolved = await self.request_repo.resolve_request(request_id, status)
            if not resolved:
                await self.session.rollback()
                raise AlreadyResolvedError()
            await self.session.commit()
            await self.session.refresh(request)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error resolving request {request_id} as {status.value}: {e}",
                exc_info=True,
            )
            raise UnavailableError("Failed to update buddy request.")

        logger.info(f"Buddy request {request.id} {status.value}")
        self.channel.publish(
            topics.incoming_requests(request.to_user_id),
            topics.outgoing_requests(request.from_user_id),
        )

    async def _link_buddies(self, request: BuddyRequest) -> None:
        # Two independent writes; a failure in between leaves a one-sided link
        request_id = request.id
        pairs = (
            (request.to_user_id, request.from_user_id),
            (request.from_user_id, request.to_user_id),
        )
        for user_id, buddy_id in pairs:
            try:
                await self.user_repo.add_buddy(user_id, buddy_id, request_id=request_id)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(
                    f"Buddy link {user_id} -> {buddy_id} failed for accepted "
                    f"request {request_id}: {e}",
                    exc_info=True,
                )
                raise BuddyLinkIncompleteError(request_id=request_id)
            self.channel.publish(topics.buddies(user_id))

    async def _read(self, query):
        try:
            return await query(self.session)
        except SQLAlchemyError as e:
            logger.error(f"Database error reading buddy data: {e}", exc_info=True)
            raise UnavailableError("Failed to read buddy data.")


def incoming_requests_query(user_id: UUID):
    async def query(session) -> list[IncomingBuddyRequest]:
        requests = await BuddyRequestRepository(session).list_incoming_pending(user_id)
        return [IncomingBuddyRequest.from_request(request) for request in requests]

    return query


def outgoing_targets_query(user_id: UUID):
    async def query(session) -> set[UUID]:
        return await BuddyRequestRepository(session).list_outgoing_pending_targets(
            user_id
        )

    return query


def buddies_query(user_id: UUID):
    async def query(session) -> list[ProfileSummary]:
        buddies = await UserRepository(session).list_buddies(user_id)
        return [ProfileSummary.from_user(buddy) for buddy in buddies]

    return query
