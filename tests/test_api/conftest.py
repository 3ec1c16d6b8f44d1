from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buddynet.auth_config import get_user_manager
from buddynet.schemas.user import UserCreate
from test_helpers import create_test_user, login

PASSWORD = "password123"


@pytest.fixture(scope="function")
async def client_for(
    test_app: FastAPI,
    db_test_session_manager: async_sessionmaker[AsyncSession],
) -> AsyncGenerator:
    """Registers a user and returns ``(client, user)`` with that user logged in."""
    clients: list[AsyncClient] = []

    async def make(username: str, **profile):
        email = f"{username}@example.com"
        user = await create_test_user(
            db_test_session_manager,
            UserCreate(email=email, password=PASSWORD, username=username, **profile),
            get_user_manager,
        )
        client = AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test")
        clients.append(client)
        await login(client, email, PASSWORD)
        return client, user

    yield make

    for client in clients:
        await client.aclose()


@pytest.fixture(scope="function")
async def alice(client_for):
    return await client_for(
        "alice", first_name="Alice", location="Lisbon", favorite_sports=["tennis"]
    )


@pytest.fixture(scope="function")
async def bob(client_for):
    return await client_for("bob")


@pytest.fixture(scope="function")
async def carol(client_for):
    return await client_for("carol")
