import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio


async def _request(test_client: AsyncClient, headers: dict, donation_id: str) -> dict:
    r = await test_client.post("/api/requests", headers=headers, json={"donation_id": donation_id,
                                                                       "notes": "for the shelter"})
    assert r.status_code == 201, r.text
    return r.json()


async def test_create_request_and_uniqueness(test_client: AsyncClient, make_user, make_donation):
    donor, _ = await make_user("donor")
    _, ngo_headers = await make_user("ngo")
    donation = await make_donation(donor)

    created = await _request(test_client, ngo_headers, donation["_id"])
    assert created["status"] == "pending"
    assert created["volunteer_id"] is None

    r = await test_client.post("/api/requests", headers=ngo_headers, json={"donation_id": donation["_id"]})
    assert r.status_code == 409


async def test_cannot_request_unavailable_donation(test_client: AsyncClient, make_user, make_donation):
    donor, _ = await make_user("donor")
    other_ngo, _ = await make_user("ngo")
    _, ngo_headers = await make_user("ngo")
    donation = await make_donation(donor, status="accepted", accepted_by=other_ngo["_id"])

    r = await test_client.post("/api/requests", headers=ngo_headers, json={"donation_id": donation["_id"]})
    assert r.status_code == 409
    r = await test_client.post("/api/requests", headers=ngo_headers, json={"donation_id": "nope"})
    assert r.status_code == 404


async def test_accept_flips_donation_and_second_accept_conflicts(test_client: AsyncClient, make_user,
                                                                 make_donation, store):
    donor, _ = await make_user("donor")
    ngo_a, headers_a = await make_user("ngo")
    _, headers_b = await make_user("ngo")
    donation = await make_donation(donor)
    req_a = await _request(test_client, headers_a, donation["_id"])
    req_b = await _request(test_client, headers_b, donation["_id"])

    r = await test_client.put(f"/api/requests/{req_a['id']}/accept", headers=headers_a)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"
    saved = await store.donations.get(donation["_id"])
    assert saved["status"] == "accepted"
    assert saved["accepted_by"] == ngo_a["_id"]

    r = await test_client.put(f"/api/requests/{req_b['id']}/accept", headers=headers_b)
    assert r.status_code == 409
    assert (await store.requests.get(req_b["id"]))["status"] == "pending"

    # the donor hears about it
    notes = await store.notifications.find({"recipient_id": donor["_id"]})
    assert [n["title"] for n in notes] == ["Donation Accepted"]


async def test_only_owner_may_act(test_client: AsyncClient, make_user, make_donation):
    donor, _ = await make_user("donor")
    _, owner_headers = await make_user("ngo")
    _, other_headers = await make_user("ngo")
    donation = await make_donation(donor)
    req = await _request(test_client, owner_headers, donation["_id"])

    for path in ("accept", "pickup", "deliver", "cancel"):
        r = await test_client.put(f"/api/requests/{req['id']}/{path}", headers=other_headers)
        assert r.status_code == 403, path
    r = await test_client.get(f"/api/requests/{req['id']}", headers=other_headers)
    assert r.status_code == 403


async def test_cancel_after_accept_resets_donation(test_client: AsyncClient, make_user, make_donation, store):
    donor, _ = await make_user("donor")
    _, headers = await make_user("ngo")
    donation = await make_donation(donor)
    req = await _request(test_client, headers, donation["_id"])
    await test_client.put(f"/api/requests/{req['id']}/accept", headers=headers)

    r = await test_client.put(f"/api/requests/{req['id']}/cancel", headers=headers, json={"reason": "no space"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"
    assert r.json()["cancellation_reason"] == "no space"

    saved = await store.donations.get(donation["_id"])
    assert saved["status"] == "pending"
    assert saved["accepted_by"] is None
    assert saved["accepted_at"] is None

    # terminal
    r = await test_client.put(f"/api/requests/{req['id']}/cancel", headers=headers)
    assert r.status_code == 409
    r = await test_client.put(f"/api/requests/{req['id']}/pickup", headers=headers)
    assert r.status_code == 409


async def test_cancel_pending_leaves_donation_alone(test_client: AsyncClient, make_user, make_donation, store):
    donor, _ = await make_user("donor")
    other_ngo, _ = await make_user("ngo")
    _, headers = await make_user("ngo")
    donation = await make_donation(donor)
    req = await _request(test_client, headers, donation["_id"])
    await store.donations.update(donation["_id"], {"status": "accepted", "accepted_by": other_ngo["_id"]})

    r = await test_client.put(f"/api/requests/{req['id']}/cancel", headers=headers)
    assert r.status_code == 200
    saved = await store.donations.get(donation["_id"])
    assert saved["status"] == "accepted"
    assert saved["accepted_by"] == other_ngo["_id"]


async def test_delete_only_pending(test_client: AsyncClient, make_user, make_donation):
    donor, _ = await make_user("donor")
    _, headers = await make_user("ngo")
    first = await make_donation(donor)
    second = await make_donation(donor)
    pending = await _request(test_client, headers, first["_id"])
    accepted = await _request(test_client, headers, second["_id"])
    await test_client.put(f"/api/requests/{accepted['id']}/accept", headers=headers)

    r = await test_client.delete(f"/api/requests/{accepted['id']}", headers=headers)
    assert r.status_code == 409
    r = await test_client.delete(f"/api/requests/{pending['id']}", headers=headers)
    assert r.status_code == 200
    r = await test_client.get("/api/requests", headers=headers)
    assert [x["id"] for x in r.json()] == [accepted["id"]]


async def test_assign_volunteer_then_pickup_and_deliver(test_client: AsyncClient, make_user, make_donation, store):
    donor, _ = await make_user("donor")
    _, headers = await make_user("ngo")
    volunteer, _ = await make_user("volunteer")
    donation = await make_donation(donor)
    req = await _request(test_client, headers, donation["_id"])

    r = await test_client.put(f"/api/requests/{req['id']}/assign-volunteer", headers=headers,
                              json={"volunteer_id": volunteer["_id"]})
    assert r.status_code == 409  # not accepted yet

    await test_client.put(f"/api/requests/{req['id']}/accept", headers=headers)
    r = await test_client.put(f"/api/requests/{req['id']}/assign-volunteer", headers=headers,
                              json={"volunteer_id": volunteer["_id"]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["request"]["status"] == "assigned"
    assert body["request"]["volunteer_id"] == volunteer["_id"]
    assert body["assignment"]["status"] == "pending"
    assert body["request"]["assignment_id"] == body["assignment"]["id"]

    saved = await store.donations.get(donation["_id"])
    assert saved["status"] == "assigned"
    assert saved["assigned_to"] == volunteer["_id"]

    r = await test_client.put(f"/api/requests/{req['id']}/pickup", headers=headers)
    assert r.status_code == 200
    assert (await store.donations.get(donation["_id"]))["status"] == "picked_up"

    r = await test_client.put(f"/api/requests/{req['id']}/deliver", headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"
    assert (await store.donations.get(donation["_id"]))["status"] == "delivered"
    assignment = await store.assignments.get(body["assignment"]["id"])
    assert assignment["status"] == "completed"


async def test_assign_non_volunteer_is_rejected(test_client: AsyncClient, make_user, make_donation):
    donor, _ = await make_user("donor")
    _, headers = await make_user("ngo")
    donation = await make_donation(donor)
    req = await _request(test_client, headers, donation["_id"])
    await test_client.put(f"/api/requests/{req['id']}/accept", headers=headers)

    r = await test_client.put(f"/api/requests/{req['id']}/assign-volunteer", headers=headers,
                              json={"volunteer_id": donor["_id"]})
    assert r.status_code == 400
