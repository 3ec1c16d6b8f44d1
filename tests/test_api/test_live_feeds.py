from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from starlette.websockets import WebSocketDisconnect

from buddynet.db import get_db_session
from buddynet.live.channel import LiveUpdateChannel
from buddynet.models import metadata
from buddynet.services.dependencies import get_live_channel
from buddynet.services.exceptions import UnavailableError
from test_helpers import access_token, auth_cookie, make_buddies, make_user

pytestmark = pytest.mark.asyncio


@asynccontextmanager
async def no_startup_checks(app: FastAPI):
    yield


@pytest.fixture
def ws_client(test_app: FastAPI, monkeypatch) -> TestClient:
    """One client portal for HTTP writes and websocket feeds alike."""
    monkeypatch.setattr(test_app.router, "lifespan_context", no_startup_checks)
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
async def conversation_id(ws_client, users, db_test_session_manager):
    alice, bob = users["alice"], users["bob"]
    await make_buddies(db_test_session_manager, alice, bob)
    response = ws_client.post(
        "/conversations",
        json={"buddy_id": str(bob.id)},
        headers=auth_cookie(await access_token(alice)),
    )
    assert response.status_code == 200, response.text
    return response.json()["id"]


async def test_incoming_feed_pushes_new_requests(ws_client, users, live_channel):
    alice, bob = users["alice"], users["bob"]
    bob_token = await access_token(bob)
    alice_token = await access_token(alice)

    with ws_client.websocket_connect(
        f"/ws/buddy-requests/incoming?token={bob_token}"
    ) as feed:
        assert feed.receive_json() == []
        assert live_channel.subscriber_count() == 1

        response = ws_client.post(
            "/buddy-requests",
            json={"to_user_id": str(bob.id)},
            headers=auth_cookie(alice_token),
        )
        assert response.status_code == 201

        pending = feed.receive_json()
        assert [item["from_user_id"] for item in pending] == [str(alice.id)]
        assert pending[0]["id"] == response.json()["id"]

    assert live_channel.subscriber_count() == 0


async def test_buddies_feed_accepts_auth_cookie(ws_client, users, live_channel):
    alice, bob = users["alice"], users["bob"]
    alice_token = await access_token(alice)
    bob_token = await access_token(bob)

    with ws_client.websocket_connect(
        "/ws/buddies", headers=auth_cookie(alice_token)
    ) as feed:
        assert feed.receive_json() == []

        sent = ws_client.post(
            "/buddy-requests",
            json={"to_user_id": str(bob.id)},
            headers=auth_cookie(alice_token),
        )
        accepted = ws_client.put(
            f"/buddy-requests/{sent.json()['id']}",
            json={"status": "accepted"},
            headers=auth_cookie(bob_token),
        )
        assert accepted.status_code == 200

        assert [buddy["id"] for buddy in feed.receive_json()] == [str(bob.id)]

    assert live_channel.subscriber_count() == 0


async def test_message_feed_delivers_thread_in_order(
    ws_client, users, conversation_id, live_channel
):
    alice, bob = users["alice"], users["bob"]
    alice_token = await access_token(alice)
    bob_token = await access_token(bob)

    with ws_client.websocket_connect(
        f"/ws/conversations/{conversation_id}/messages?token={bob_token}"
    ) as feed:
        assert feed.receive_json() == []

        response = ws_client.post(
            f"/conversations/{conversation_id}/messages",
            json={"text": "Padel tonight?"},
            headers=auth_cookie(alice_token),
        )
        assert response.status_code == 201

        thread = feed.receive_json()
        assert [(m["text"], m["sequence"]) for m in thread] == [("Padel tonight?", 1)]
        assert thread[0]["sender_id"] == str(alice.id)

    assert live_channel.subscriber_count() == 0


@pytest.mark.parametrize(
    "path",
    [
        "/ws/buddy-requests/incoming",
        "/ws/buddies",
        "/ws/conversations?token=not-a-jwt",
    ],
)
async def test_anonymous_feed_is_refused(ws_client, live_channel, path):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(path):
            pass

    assert exc_info.value.code == 1008
    assert live_channel.subscriber_count() == 0


async def test_message_feed_refuses_non_participant(
    ws_client, users, conversation_id, live_channel
):
    carol_token = await access_token(users["carol"])

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(
            f"/ws/conversations/{conversation_id}/messages?token={carol_token}"
        ):
            pass

    assert exc_info.value.code == 1008
    assert live_channel.subscriber_count() == 0


async def test_message_feed_refuses_unknown_conversation(
    ws_client, users, live_channel
):
    alice_token = await access_token(users["alice"])

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(
            f"/ws/conversations/nobody_here/messages?token={alice_token}"
        ):
            pass

    assert exc_info.value.code == 1008


async def test_store_failure_closes_feed_with_internal_error(
    ws_client, users, live_channel, monkeypatch
):
    bob_token = await access_token(users["bob"])

    async def failing_fetch(query):
        raise UnavailableError("Failed to read live snapshot from the data store.")

    monkeypatch.setattr(live_channel, "fetch", failing_fetch)

    with ws_client.websocket_connect(
        f"/ws/buddy-requests/incoming?token={bob_token}"
    ) as feed:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            feed.receive_json()

    assert exc_info.value.code == 1011
    assert live_channel.subscriber_count() == 0


@pytest.fixture
async def single_connection_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'feeds.db'}",
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


async def test_open_feeds_do_not_hold_pooled_connections(
    ws_client, test_app, single_connection_engine
):
    session_maker = async_sessionmaker(single_connection_engine, expire_on_commit=False)
    alice = make_user(username="alice")
    async with session_maker() as session:
        async with session.begin():
            session.add(alice)
    alice_token = await access_token(alice)

    async def single_connection_session():
        async with session_maker() as session:
            yield session

    channel = LiveUpdateChannel(session_factory=session_maker)
    test_app.dependency_overrides[get_db_session] = single_connection_session
    test_app.dependency_overrides[get_live_channel] = lambda: channel

    with ws_client.websocket_connect(
        f"/ws/buddy-requests/outgoing?token={alice_token}"
    ) as outgoing, ws_client.websocket_connect(
        f"/ws/buddies?token={alice_token}"
    ) as buddies:
        assert outgoing.receive_json() == {"pending_user_ids": []}
        assert buddies.receive_json() == []
        assert single_connection_engine.sync_engine.pool.checkedout() == 0

        response = ws_client.get("/users/me/buddies", headers=auth_cookie(alice_token))
        assert response.status_code == 200
        assert response.json() == []

    assert channel.subscriber_count() == 0
