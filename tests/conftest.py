import os
from typing import Any, AsyncGenerator

# Must be set before buddynet.core.config is imported
os.environ.setdefault("SECRET", "test-secret-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

import pytest
from fastapi import Depends, FastAPI
from fastapi_users.db import SQLAlchemyUserDatabase
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from buddynet.db import get_db_session, get_user_db
from buddynet.live.channel import LiveUpdateChannel
from buddynet.main import app
from buddynet.models import User, metadata
from buddynet.repositories.buddy_request_repository import BuddyRequestRepository
from buddynet.repositories.conversation_repository import ConversationRepository
from buddynet.repositories.message_repository import MessageRepository
from buddynet.repositories.user_repository import UserRepository
from buddynet.services.connection_service import ConnectionService
from buddynet.services.conversation_service import ConversationService
from buddynet.services.dependencies import get_live_channel
from buddynet.services.message_service import MessageService
from buddynet.services.provider import ServiceProvider
from test_helpers import make_user

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# Engine per test: aiosqlite connections are bound to the event loop that opened them
@pytest.fixture(scope="function")
async def db_test_session_manager() -> (
    AsyncGenerator[async_sessionmaker[AsyncSession], None]
):
    test_engine = create_async_engine(TEST_DATABASE_URL)
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield async_sessionmaker(test_engine, expire_on_commit=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await test_engine.dispose()


async def override_get_user_db(
    session: AsyncSession = Depends(get_db_session),
) -> SQLAlchemyUserDatabase[User, Any]:
    yield SQLAlchemyUserDatabase(session, User)


@pytest.fixture(scope="function")
def live_channel(
    db_test_session_manager: async_sessionmaker[AsyncSession],
) -> LiveUpdateChannel:
    ServiceProvider.clear()
    channel = LiveUpdateChannel(session_factory=db_test_session_manager)
    yield channel
    ServiceProvider.clear()


@pytest.fixture(scope="function")
def test_app(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    live_channel: LiveUpdateChannel,
) -> FastAPI:
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with db_test_session_manager() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_user_db] = override_get_user_db
    app.dependency_overrides[get_live_channel] = lambda: live_channel
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture(scope="function")
async def db_session(
    db_test_session_manager: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with db_test_session_manager() as session:
        yield session


@pytest.fixture(scope="function")
async def users(
    db_test_session_manager: async_sessionmaker[AsyncSession],
) -> dict[str, User]:
    """Three persisted users, keyed by first name."""
    people = {
        "alice": make_user(
            username="alice",
            first_name="Alice",
            last_name="Archer",
            location="Lisbon",
            favorite_sports=["tennis", "running"],
        ),
        "bob": make_user(
            username="bob",
            first_name="Bob",
            last_name="Baker",
            location="Porto",
            favorite_sports=["padel"],
        ),
        "carol": make_user(username="carol"),
    }
    async with db_test_session_manager() as session:
        async with session.begin():
            session.add_all(people.values())
    return people


@pytest.fixture(scope="function")
def connection_service(
    db_session: AsyncSession, live_channel: LiveUpdateChannel
) -> ConnectionService:
    return ConnectionService(
        buddy_request_repository=BuddyRequestRepository(db_session),
        user_repository=UserRepository(db_session),
        channel=live_channel,
    )


@pytest.fixture(scope="function")
def conversation_service(
    db_session: AsyncSession, live_channel: LiveUpdateChannel
) -> ConversationService:
    return ConversationService(
        conversation_repository=ConversationRepository(db_session),
        user_repository=UserRepository(db_session),
        channel=live_channel,
    )


@pytest.fixture(scope="function")
def message_service(
    db_session: AsyncSession, live_channel: LiveUpdateChannel
) -> MessageService:
    return MessageService(
        message_repository=MessageRepository(db_session),
        conversation_repository=ConversationRepository(db_session),
        channel=live_channel,
    )
