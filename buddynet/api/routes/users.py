import logging

from fastapi import APIRouter, Depends

from buddynet.api.common import BaseRouter
from buddynet.auth_config import current_active_user
from buddynet.logic.buddy_request_processing import handle_list_buddies
from buddynet.models import User
from buddynet.schemas.profile import ProfileSummary
from buddynet.services.connection_service import ConnectionService
from buddynet.services.dependencies import get_connection_service

logger = logging.getLogger(__name__)
users_router_instance = APIRouter(prefix="/users")
router = BaseRouter(router=users_router_instance, default_tags=["users"])


@router.get("/me/buddies", response_model=list[ProfileSummary])
async def list_my_buddies(
    user: User = Depends(current_active_user),
    connection_service: ConnectionService = Depends(get_connection_service),
):
    return await handle_list_buddies(
        current_user=user, connection_service=connection_service
    )
