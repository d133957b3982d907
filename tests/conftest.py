# tests/conftest.py
import itertools
from datetime import timedelta

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from foodlink.core.clock import utcnow
from foodlink.core.security import create_token
from foodlink.deps import get_store
from foodlink.main import app
from foodlink.models.user import WEEKDAYS, UserCreate
from foodlink.repos.inmemory import InMemoryStore

ALL_WEEK = {d: {"active": True, "slots": [{"start": "09:00", "end": "17:00"}]} for d in WEEKDAYS}

_seq = itertools.count(1)


@pytest.fixture
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
async def test_client(store):
    app.dependency_overrides[get_store] = lambda: store
    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()


def _profile(role: str) -> dict:
    if role == "volunteer":
        return {"role": "volunteer", "vehicle_type": "two_wheeler", "max_weight": 50,
                "availability_schedule": ALL_WEEK}
    if role == "ngo":
        return {"role": "ngo", "organization_name": "NGO One", "registration_number": "NGO-123",
                "daily_capacity": 100}
    if role == "donor":
        return {"role": "donor", "organization_name": "Donor Org", "organization_type": "Restaurant"}
    return {"role": role}


@pytest.fixture
def make_user(store):
    async def _make(role: str, city: str = "Test City", profile: dict | None = None, **overrides):
        n = next(_seq)
        raw = {
            "email": f"{role}{n}@test.com",
            "full_name": f"{role.capitalize()} {n}",
            "phone": "1234567890",
            "role": role,
            "address": f"{n} Test St",
            "city": city,
            "verification_status": "approved",
            "profile": {**_profile(role), **(profile or {})},
            **overrides,
        }
        user = await store.users.insert(UserCreate.model_validate(raw).to_doc())
        return user, {"Authorization": f"Bearer {create_token(user['_id'])}"}
    return _make


def tomorrow() -> str:
    return (utcnow() + timedelta(days=1)).date().isoformat()


@pytest.fixture
def donation_data():
    def _data(**overrides) -> dict:
        data = {
            "food_name": "Cooked Rice",
            "food_type": "cooked",
            "quantity": 10,
            "unit": "kg",
            "estimated_servings": 50,
            "preparation_date": utcnow().date().isoformat(),
            "preparation_time": "12:00",
            "expiry_date": tomorrow(),
            "expiry_time": "18:00",
            "storage_condition": "Refrigerated (0-4°C)",
            "pickup_address": "123 Donor St",
            "city": "Test City",
            "pickup_deadline": tomorrow() + "T18:00:00Z",
            "hygiene": {
                "safe_handling": True,
                "temperature_control": True,
                "proper_packaging": True,
                "no_contamination": True,
            },
        }
        data.update(overrides)
        return data
    return _data


@pytest.fixture
def make_donation(store, donation_data):
    """Insert a donation straight into the store, bypassing the lifecycle."""
    async def _make(donor: dict, **fields) -> dict:
        now = utcnow()
        doc = {
            **donation_data(),
            "donor_id": donor["_id"],
            "status": "pending",
            "accepted_by": None,
            "assigned_to": None,
            "accepted_at": None,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        return await store.donations.insert(doc)
    return _make
