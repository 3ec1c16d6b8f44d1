import logging
import uuid
from typing import Optional

from fastapi import Depends, Request, Response, WebSocket
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import (
    AuthenticationBackend,
    CookieTransport,
    JWTStrategy,
)
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession

from buddynet.core.config import settings
from buddynet.db import get_user_db
from buddynet.models import User

logger = logging.getLogger(__name__)


class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    reset_password_token_secret = settings.SECRET
    verification_token_secret = settings.SECRET

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info(f"User {user.id} has registered.")

    async def on_after_forgot_password(
        self, user: User, token: str, request: Optional[Request] = None
    ):
        logger.info(f"User {user.id} has forgot their password.")

    async def on_after_request_verify(
        self, user: User, token: str, request: Optional[Request] = None
    ):
        logger.info(f"Verification requested for user {user.id}.")

    async def on_after_login(
        self,
        user: User,
        request: Optional[Request] = None,
        response: Optional[Response] = None,
    ):
        logger.info(f"User {user.id} has logged in.")


async def get_user_manager(user_db: SQLAlchemyUserDatabase = Depends(get_user_db)):
    yield UserManager(user_db)


transport = CookieTransport()


def get_strategy() -> JWTStrategy:
    return JWTStrategy(
        secret=settings.SECRET,
        lifetime_seconds=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        algorithm=settings.ALGORITHM,
    )


auth_backend = AuthenticationBackend(
    name="cookie",
    transport=transport,
    get_strategy=get_strategy,
)

fastapi_users = FastAPIUsers[User, uuid.UUID](get_user_manager, [auth_backend])

current_active_user = fastapi_users.current_user(active=True)


async def websocket_user(websocket: WebSocket, session: AsyncSession) -> Optional[User]:
    """
    Resolves the caller of a websocket route on the given session.

    Browsers send the auth cookie with the upgrade request; other clients can
    pass the same JWT as a ``token`` query parameter. Returns None when the
    caller is anonymous or inactive.
    """
    token = websocket.cookies.get(transport.cookie_name) or websocket.query_params.get(
        "token"
    )
    if not token:
        return None
    user_manager = UserManager(SQLAlchemyUserDatabase(session, User))
    user = await get_strategy().read_token(token, user_manager)
    if user is None or not user.is_active:
        return None
    return user
