"""Websocket feeds backed by live subscriptions.

Each frame is the complete current snapshot of the subscribed view. A feed
ends when the client disconnects, and the subscription is cancelled on every
exit path.

The caller is authenticated and authorized in a short-lived session that is
closed before streaming starts; snapshots are then read through the channel's
own sessions, so an open feed holds no pooled connection between frames.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from buddynet.auth_config import websocket_user
from buddynet.live.channel import LiveUpdateChannel, Subscription
from buddynet.models import User
from buddynet.repositories.buddy_request_repository import BuddyRequestRepository
from buddynet.repositories.conversation_repository import ConversationRepository
from buddynet.repositories.message_repository import MessageRepository
from buddynet.repositories.user_repository import UserRepository
from buddynet.schemas.buddy_request import OutgoingPendingTargets
from buddynet.services.connection_service import ConnectionService
from buddynet.services.conversation_service import ConversationService
from buddynet.services.dependencies import get_live_channel
from buddynet.services.exceptions import (
    NotAuthorizedError,
    NotFoundError,
    ServiceError,
)
from buddynet.services.message_service import MessageService

logger = logging.getLogger(__name__)

live_router_instance = APIRouter(prefix="/ws", tags=["live"])

FeedSubscriber = Callable[[AsyncSession, User], Awaitable[Subscription]]


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def stream_snapshots(
    websocket: WebSocket,
    subscription: Subscription,
    present: Optional[Callable[[Any], Any]] = None,
) -> None:
    """Forwards snapshots until the client leaves or the subscription ends."""

    async def pump():
        async for snapshot in subscription:
            payload = present(snapshot) if present else snapshot
            await websocket.send_json(jsonable_encoder(payload))

    pump_task = asyncio.create_task(pump())
    watch_task = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, pending = await asyncio.wait(
            {pump_task, watch_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()
    finally:
        subscription.cancel()


async def open_feed(
    websocket: WebSocket,
    channel: LiveUpdateChannel,
    subscribe: FeedSubscriber,
    present: Optional[Callable[[Any], Any]] = None,
) -> None:
    async with channel.session_factory() as session:
        user = await websocket_user(websocket, session)
        if user is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        try:
            subscription = await subscribe(session, user)
        except (NotFoundError, NotAuthorizedError) as e:
            logger.info(
                f"Rejected live feed {websocket.url.path} for {user.id}: {e.message}"
            )
            await websocket.close(
                code=status.WS_1008_POLICY_VIOLATION, reason=e.message
            )
            return
        except ServiceError as e:
            logger.error(f"Live feed {websocket.url.path} could not start: {e.message}")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=e.message)
            return

    await websocket.accept()
    logger.info(f"Live feed {websocket.url.path} opened for {user.id}")
    try:
        await stream_snapshots(websocket, subscription, present)
    except WebSocketDisconnect:
        logger.info(f"Live feed {websocket.url.path} closed by {user.id}")
    except ServiceError as e:
        logger.error(f"Live feed {websocket.url.path} failed: {e.message}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=e.message)
    finally:
        subscription.cancel()


def _connection_service(session: AsyncSession, channel: LiveUpdateChannel):
    return ConnectionService(
        buddy_request_repository=BuddyRequestRepository(session),
        user_repository=UserRepository(session),
        channel=channel,
    )


@live_router_instance.websocket("/buddy-requests/incoming")
async def incoming_requests_feed(
    websocket: WebSocket,
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    await open_feed(
        websocket,
        channel,
        lambda session, user: _connection_service(session, channel).list_incoming(user),
    )


@live_router_instance.websocket("/buddy-requests/outgoing")
async def outgoing_requests_feed(
    websocket: WebSocket,
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    await open_feed(
        websocket,
        channel,
        lambda session, user: _connection_service(
            session, channel
        ).list_outgoing_pending_targets(user),
        present=lambda targets: OutgoingPendingTargets(
            pending_user_ids=sorted(targets, key=str)
        ),
    )


@live_router_instance.websocket("/buddies")
async def buddies_feed(
    websocket: WebSocket,
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    await open_feed(
        websocket,
        channel,
        lambda session, user: _connection_service(session, channel).list_buddies(user),
    )


@live_router_instance.websocket("/conversations")
async def conversations_feed(
    websocket: WebSocket,
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    def subscribe(session: AsyncSession, user: User):
        conv_service = ConversationService(
            conversation_repository=ConversationRepository(session),
            user_repository=UserRepository(session),
            channel=channel,
        )
        return conv_service.list_conversations_for(user)

    await open_feed(websocket, channel, subscribe)


@live_router_instance.websocket("/conversations/{conversation_id}/messages")
async def messages_feed(
    websocket: WebSocket,
    conversation_id: str,
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    def subscribe(session: AsyncSession, user: User):
        msg_service = MessageService(
            message_repository=MessageRepository(session),
            conversation_repository=ConversationRepository(session),
            channel=channel,
        )
        return msg_service.stream_messages(conversation_id, user)

    await open_feed(websocket, channel, subscribe)
