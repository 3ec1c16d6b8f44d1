import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from buddynet.api.common import BaseRouter
from buddynet.auth_config import current_active_user
from buddynet.logic.buddy_request_processing import (
    handle_list_incoming_requests,
    handle_list_outgoing_targets,
    handle_repair_buddy_link,
    handle_send_buddy_request,
    handle_update_buddy_request,
)
from buddynet.models import User
from buddynet.schemas.buddy_request import (
    BuddyRequestCreate,
    BuddyRequestResponse,
    BuddyRequestUpdate,
    IncomingBuddyRequest,
    OutgoingPendingTargets,
)
from buddynet.services.connection_service import ConnectionService
from buddynet.services.dependencies import get_connection_service

logger = logging.getLogger(__name__)
buddy_requests_router_instance = APIRouter(prefix="/buddy-requests")
router = BaseRouter(
    router=buddy_requests_router_instance, default_tags=["buddy-requests"]
)


@router.post(
    "",
    response_model=BuddyRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_buddy_request(
    request_data: BuddyRequestCreate,
    user: User = Depends(current_active_user),
    connection_service: ConnectionService = Depends(get_connection_service),
):
    """Sends a buddy request to another user."""
    return await handle_send_buddy_request(
        to_user_id=request_data.to_user_id,
        current_user=user,
        connection_service=connection_service,
    )


@router.get("/incoming", response_model=list[IncomingBuddyRequest])
async def list_incoming_requests(
    user: User = Depends(current_active_user),
    connection_service: ConnectionService = Depends(get_connection_service),
):
    """Pending requests addressed to the current user, newest first."""
    return await handle_list_incoming_requests(
        current_user=user, connection_service=connection_service
    )


@router.get("/outgoing", response_model=OutgoingPendingTargets)
async def list_outgoing_targets(
    user: User = Depends(current_active_user),
    connection_service: ConnectionService = Depends(get_connection_service),
):
    return await handle_list_outgoing_targets(
        current_user=user, connection_service=connection_service
    )


@router.put("/{request_id}", response_model=BuddyRequestResponse)
async def update_buddy_request(
    request_id: UUID,
    update_data: BuddyRequestUpdate,
    user: User = Depends(current_active_user),
    connection_service: ConnectionService = Depends(get_connection_service),
):
    """Accepts or rejects a buddy request addressed to the current user."""
    return await handle_update_buddy_request(
        request_id=request_id,
        target_status=update_data.status,
        current_user=user,
        connection_service=connection_service,
        from_user_id=update_data.from_user_id,
    )


@router.post("/{request_id}/repair", response_model=BuddyRequestResponse)
async def repair_buddy_link(
    request_id: UUID,
    user: User = Depends(current_active_user),
    connection_service: ConnectionService = Depends(get_connection_service),
):
    """Finishes the buddy link of an accepted request after a partial failure."""
    return await handle_repair_buddy_link(
        request_id=request_id, current_user=user, connection_service=connection_service
    )
