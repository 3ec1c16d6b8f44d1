import pytest
from httpx import AsyncClient

from buddynet.schemas.buddy_request import BuddyRequestResponse

pytestmark = pytest.mark.asyncio


async def send_request(client: AsyncClient, to_user_id) -> BuddyRequestResponse:
    response = await client.post("/buddy-requests", json={"to_user_id": str(to_user_id)})
    assert response.status_code == 201, response.text
    return BuddyRequestResponse(**response.json())


async def test_buddy_request_routes_require_login(test_client: AsyncClient):
    response = await test_client.get("/buddy-requests/incoming")
    assert response.status_code == 401


async def test_send_and_list_requests(alice, bob):
    alice_client, alice_user = alice
    bob_client, bob_user = bob

    created = await send_request(alice_client, bob_user.id)
    assert created.status == "pending"

    incoming = await bob_client.get("/buddy-requests/incoming")
    assert incoming.status_code == 200
    [item] = incoming.json()
    assert item["id"] == str(created.id)
    assert item["sender"]["name"] == "Alice"
    assert item["sender"]["location"] == "Lisbon"
    assert item["sender"]["sports"] == ["tennis"]

    outgoing = await alice_client.get("/buddy-requests/outgoing")
    assert outgoing.json() == {"pending_user_ids": [str(bob_user.id)]}


async def test_send_request_errors(alice, bob):
    alice_client, alice_user = alice
    _, bob_user = bob

    to_self = await alice_client.post(
        "/buddy-requests", json={"to_user_id": str(alice_user.id)}
    )
    assert to_self.status_code == 400

    unknown = await alice_client.post(
        "/buddy-requests", json={"to_user_id": "00000000-0000-4000-8000-000000000000"}
    )
    assert unknown.status_code == 404

    await send_request(alice_client, bob_user.id)
    duplicate = await alice_client.post(
        "/buddy-requests", json={"to_user_id": str(bob_user.id)}
    )
    assert duplicate.status_code == 409


async def test_accept_request_makes_buddies(alice, bob):
    alice_client, alice_user = alice
    bob_client, bob_user = bob
    created = await send_request(alice_client, bob_user.id)

    response = await bob_client.put(
        f"/buddy-requests/{created.id}",
        json={"status": "accepted", "from_user_id": str(alice_user.id)},
    )

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "accepted"
    alice_buddies = (await alice_client.get("/users/me/buddies")).json()
    bob_buddies = (await bob_client.get("/users/me/buddies")).json()
    assert [buddy["id"] for buddy in alice_buddies] == [str(bob_user.id)]
    assert [buddy["id"] for buddy in bob_buddies] == [str(alice_user.id)]

    again = await bob_client.put(
        f"/buddy-requests/{created.id}", json={"status": "rejected"}
    )
    assert again.status_code == 409

    already = await alice_client.post(
        "/buddy-requests", json={"to_user_id": str(bob_user.id)}
    )
    assert already.status_code == 409


async def test_only_recipient_can_resolve(alice, bob, carol):
    alice_client, _ = alice
    _, bob_user = bob
    carol_client, _ = carol
    created = await send_request(alice_client, bob_user.id)

    by_carol = await carol_client.put(
        f"/buddy-requests/{created.id}", json={"status": "accepted"}
    )
    by_sender = await alice_client.put(
        f"/buddy-requests/{created.id}", json={"status": "accepted"}
    )

    assert by_carol.status_code == 404
    assert by_sender.status_code == 404


async def test_pending_is_not_a_valid_target_status(alice, bob):
    alice_client, _ = alice
    bob_client, bob_user = bob
    created = await send_request(alice_client, bob_user.id)

    response = await bob_client.put(
        f"/buddy-requests/{created.id}", json={"status": "pending"}
    )

    assert response.status_code == 400


async def test_reject_and_repair_routes(alice, bob):
    alice_client, _ = alice
    bob_client, bob_user = bob
    created = await send_request(alice_client, bob_user.id)

    rejected = await bob_client.put(
        f"/buddy-requests/{created.id}", json={"status": "rejected"}
    )
    assert rejected.json()["status"] == "rejected"
    assert (await bob_client.get("/users/me/buddies")).json() == []

    repair = await alice_client.post(f"/buddy-requests/{created.id}/repair")
    assert repair.status_code == 400
