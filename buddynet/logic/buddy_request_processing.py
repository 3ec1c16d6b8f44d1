import logging
from uuid import UUID

from buddynet.models import BuddyRequest, User
from buddynet.schemas.buddy_request import (
    BuddyRequestStatus,
    IncomingBuddyRequest,
    OutgoingPendingTargets,
)
from buddynet.schemas.profile import ProfileSummary
from buddynet.services.connection_service import ConnectionService
from buddynet.services.exceptions import BusinessRuleError, ServiceError

logger = logging.getLogger(__name__)


async def handle_send_buddy_request(
    to_user_id: UUID,
    current_user: User,
    connection_service: ConnectionService,
) -> BuddyRequest:
    """
    Sends a buddy request from the current user.

    Args:
        to_user_id: The user the request is addressed to.
        current_user: The user sending the request.
        connection_service: The connection service dependency.

    Returns:
        The newly created pending request.

    Raises:
        BusinessRuleError: If the user addresses themselves.
        UserNotFoundError: If the recipient does not exist.
        AlreadyBuddiesError: If both users are already buddies.
        DuplicateRequestError: If a pending request to the same user exists.
        UnavailableError: If the data store cannot be reached.
    """
    logger.debug(f"Handler: {current_user.id} requesting buddy {to_user_id}")
    return await connection_service.send_request(current_user, to_user_id)


async def handle_update_buddy_request(
    request_id: UUID,
    target_status: BuddyRequestStatus,
    current_user: User,
    connection_service: ConnectionService,
    from_user_id: UUID | None = None,
) -> BuddyRequest:
    """
    Accepts or rejects a buddy request addressed to the current user.

    Raises:
        BusinessRuleError: If the target status is not accepted or rejected.
        BuddyRequestNotFoundError: If the request is missing or not addressed
            to the current user.
        AlreadyResolvedError: If the request is no longer pending.
        BuddyLinkIncompleteError: If the request was accepted but the buddy
            link could not be fully written.
    """
    logger.debug(
        f"Handler: Updating buddy request {request_id} to {target_status.value} "
        f"by user {current_user.id}"
    )
    try:
        if target_status == BuddyRequestStatus.ACCEPTED:
            updated = await connection_service.accept_request(
                request_id, current_user, from_user_id=from_user_id
            )
        elif target_status == BuddyRequestStatus.REJECTED:
            updated = await connection_service.reject_request(request_id, current_user)
        else:
            raise BusinessRuleError(
                f"Invalid target status '{target_status.value}'. "
                "Must be 'accepted' or 'rejected'."
            )
        logger.info(f"Handler: Buddy request {request_id} is now {updated.status.value}")
        return updated
    except ServiceError as e:
        logger.info(f"Handler: Service error updating buddy request {request_id}: {e}")
        raise


async def handle_repair_buddy_link(
    request_id: UUID,
    current_user: User,
    connection_service: ConnectionService,
) -> BuddyRequest:
    return await connection_service.repair_buddy_link(request_id, current_user)


async def handle_list_incoming_requests(
    current_user: User, connection_service: ConnectionService
) -> list[IncomingBuddyRequest]:
    return await connection_service.get_incoming_requests(current_user)


async def handle_list_outgoing_targets(
    current_user: User, connection_service: ConnectionService
) -> OutgoingPendingTargets:
    targets = await connection_service.get_outgoing_pending_targets(current_user)
    return OutgoingPendingTargets(pending_user_ids=sorted(targets, key=str))


async def handle_list_buddies(
    current_user: User, connection_service: ConnectionService
) -> list[ProfileSummary]:
    """Lists the current user's buddies as profile summaries."""
    return await connection_service.get_buddies(current_user)
