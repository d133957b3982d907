import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio


async def test_create_and_get_round_trip(test_client: AsyncClient, make_user, donation_data):
    _, headers = await make_user("donor")
    r = await test_client.post("/api/donations", headers=headers,
                               json=donation_data(quantity=10, unit="kg", estimated_servings=50))
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["status"] == "pending"
    assert created["is_expired"] is False

    r = await test_client.get(f"/api/donations/{created['id']}", headers=headers)
    assert r.status_code == 200, r.text
    got = r.json()
    assert got["quantity"] == 10
    assert got["unit"] == "kg"
    assert got["estimated_servings"] == 50


@pytest.mark.parametrize("overrides", [
    {"quantity": 0},
    {"estimated_servings": 0},
    {"storage_condition": "Under the sink"},
    {"hygiene": {"safe_handling": True, "temperature_control": False,
                 "proper_packaging": True, "no_contamination": True}},
    {"hygiene": {"safe_handling": True}},
])
async def test_create_rejects_invalid_fields(test_client: AsyncClient, make_user, donation_data, overrides):
    _, headers = await make_user("donor")
    r = await test_client.post("/api/donations", headers=headers, json=donation_data(**overrides))
    assert r.status_code == 400, r.text


async def test_missing_safety_field_is_rejected(test_client: AsyncClient, make_user, donation_data):
    _, headers = await make_user("donor")
    payload = donation_data()
    del payload["expiry_date"]
    r = await test_client.post("/api/donations", headers=headers, json=payload)
    assert r.status_code == 400
    assert "expiry_date" in r.json()["detail"]


async def test_only_donors_create(test_client: AsyncClient, make_user, donation_data):
    _, headers = await make_user("ngo")
    r = await test_client.post("/api/donations", headers=headers, json=donation_data())
    assert r.status_code == 403


async def test_other_donor_cannot_update_or_delete(test_client: AsyncClient, make_user, make_donation):
    owner, _ = await make_user("donor")
    _, other_headers = await make_user("donor")
    donation = await make_donation(owner)

    r = await test_client.put(f"/api/donations/{donation['_id']}", headers=other_headers,
                              json={"food_name": "Stolen"})
    assert r.status_code == 403
    r = await test_client.delete(f"/api/donations/{donation['_id']}", headers=other_headers)
    assert r.status_code == 403
    r = await test_client.get(f"/api/donations/{donation['_id']}", headers=other_headers)
    assert r.status_code == 403


async def test_accepted_donation_is_locked(test_client: AsyncClient, make_user, make_donation):
    owner, headers = await make_user("donor")
    ngo, _ = await make_user("ngo")
    donation = await make_donation(owner, status="accepted", accepted_by=ngo["_id"])

    r = await test_client.put(f"/api/donations/{donation['_id']}", headers=headers, json={"quantity": 3})
    assert r.status_code == 409
    r = await test_client.delete(f"/api/donations/{donation['_id']}", headers=headers)
    assert r.status_code == 409


async def test_update_ignores_status_and_delete_pending(test_client: AsyncClient, make_user, make_donation, store):
    owner, headers = await make_user("donor")
    donation = await make_donation(owner)

    r = await test_client.put(f"/api/donations/{donation['_id']}", headers=headers,
                              json={"quantity": 4, "status": "delivered"})
    assert r.status_code == 200, r.text
    assert r.json()["quantity"] == 4
    assert r.json()["status"] == "pending"

    r = await test_client.delete(f"/api/donations/{donation['_id']}", headers=headers)
    assert r.status_code == 200
    assert await store.donations.get(donation["_id"]) is None


@pytest.mark.parametrize("blank", [{"city": "   "}, {"food_name": ""}, {"pickup_address": " "}, {"food_type": ""}])
async def test_update_rejects_blank_required_text(test_client: AsyncClient, make_user, make_donation, store, blank):
    owner, headers = await make_user("donor")
    donation = await make_donation(owner)

    r = await test_client.put(f"/api/donations/{donation['_id']}", headers=headers, json=blank)
    assert r.status_code == 400
    assert "must not be blank" in r.json()["detail"]
    saved = await store.donations.get(donation["_id"])
    assert saved["city"] == "Test City"
    assert saved["food_name"] == "Cooked Rice"

    r = await test_client.put(f"/api/donations/{donation['_id']}", headers=headers, json={"city": "  New Town "})
    assert r.status_code == 200
    assert r.json()["city"] == "New Town"


async def test_missing_donation_is_404(test_client: AsyncClient, make_user):
    _, headers = await make_user("donor")
    r = await test_client.get("/api/donations/000000000000000000000000", headers=headers)
    assert r.status_code == 404


async def test_donor_lists_only_own(test_client: AsyncClient, make_user, make_donation):
    donor, headers = await make_user("donor")
    other, _ = await make_user("donor")
    mine = await make_donation(donor)
    await make_donation(other)

    r = await test_client.get("/api/donations", headers=headers)
    assert [d["id"] for d in r.json()] == [mine["_id"]]

    _, ngo_headers = await make_user("ngo")
    r = await test_client.get("/api/donations/available", headers=ngo_headers)
    assert len(r.json()) == 2


async def test_direct_accept_pickup_deliver(test_client: AsyncClient, make_user, make_donation):
    donor, _ = await make_user("donor")
    ngo, ngo_headers = await make_user("ngo")
    _, vol_headers = await make_user("volunteer")
    donation = await make_donation(donor)
    url = f"/api/donations/{donation['_id']}"

    r = await test_client.put(f"{url}/accept", headers=ngo_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"
    assert r.json()["assigned_to"] == ngo["_id"]
    assert r.json()["accepted_at"] is not None

    r = await test_client.put(f"{url}/accept", headers=vol_headers)
    assert r.status_code == 409

    r = await test_client.put(f"{url}/pickup", headers=vol_headers)
    assert r.status_code == 403

    r = await test_client.put(f"{url}/pickup", headers=ngo_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "picked_up"

    r = await test_client.put(f"{url}/deliver", headers=ngo_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"
    assert r.json()["delivered_at"] is not None


async def test_cancel_cascades_to_requests_and_assignment(test_client: AsyncClient, make_user,
                                                          make_donation, store):
    donor, headers = await make_user("donor")
    ngo, _ = await make_user("ngo")
    volunteer, _ = await make_user("volunteer")
    donation = await make_donation(donor, status="assigned", accepted_by=ngo["_id"],
                                   assigned_to=volunteer["_id"])
    request = await store.requests.insert({"donation_id": donation["_id"], "ngo_id": ngo["_id"],
                                           "status": "assigned"})
    assignment = await store.assignments.insert({"donation_id": donation["_id"],
                                                 "volunteer_id": volunteer["_id"], "status": "accepted"})

    r = await test_client.put(f"/api/donations/{donation['_id']}/cancel", headers=headers,
                              json={"reason": "spoiled"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"
    assert (await store.requests.get(request["_id"]))["status"] == "cancelled"
    assert (await store.assignments.get(assignment["_id"]))["status"] == "cancelled"

    r = await test_client.put(f"/api/donations/{donation['_id']}/cancel", headers=headers)
    assert r.status_code == 409
