"""Seed demo users into MongoDB and print a day-long token for each.

Run from the repo root: ``python -m scripts.seed_demo``.
"""
import asyncio

from foodlink.core.security import create_token
from foodlink.models.user import UserCreate
from foodlink.repos.mongo import MongoStore

DEMO_USERS = [
    {
        "email": "donor@foodlink.local", "full_name": "Demo Donor", "phone": "1234567890",
        "role": "donor", "address": "123 Donor St", "city": "Test City",
        "verification_status": "approved",
        "profile": {"role": "donor", "organization_name": "Demo Kitchen", "organization_type": "Restaurant"},
    },
    {
        "email": "ngo@foodlink.local", "full_name": "Demo NGO", "phone": "0987654321",
        "role": "ngo", "address": "456 NGO Rd", "city": "Test City",
        "verification_status": "approved",
        "profile": {"role": "ngo", "organization_name": "Demo Shelter", "registration_number": "NGO-123",
                    "daily_capacity": 100},
    },
    {
        "email": "volunteer@foodlink.local", "full_name": "Demo Volunteer", "phone": "1122334455",
        "role": "volunteer", "address": "789 Vol St", "city": "Test City",
        "verification_status": "approved", "is_available": True,
        "profile": {"role": "volunteer", "vehicle_type": "two_wheeler", "max_weight": 50},
    },
]


async def main():
    store = MongoStore()
    await store.ensure_indexes()
    for raw in DEMO_USERS:
        doc = UserCreate.model_validate(raw).to_doc()
        existing = await store.users.find_one({"email": doc["email"]})
        saved = existing or await store.users.insert(doc)
        print(f"{saved['role']:<10} {saved['email']:<28} token={create_token(saved['_id'], minutes=24 * 60)}")
    store.close()


if __name__ == "__main__":
    asyncio.run(main())
