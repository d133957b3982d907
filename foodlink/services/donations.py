# foodlink/services/donations.py
import logging
from typing import Callable, List, Optional

from foodlink.core.clock import utcnow
from foodlink.core.errors import ConflictError, ForbiddenError, NotFoundError, parse_payload
from foodlink.core.states import LOCKED_DONATION, TERMINAL_DONATION, ensure_transition
from foodlink.models.donation import DonationCreate, DonationUpdate
from foodlink.services import sync
from foodlink.services.notifier import Notifier, notify_quietly

logger = logging.getLogger(__name__)


class DonationLifecycle:
    """Owns Donation.status: create, donor edits, direct accept/pickup/deliver, cancel."""

    def __init__(self, store, notifier: Optional[Notifier] = None, clock: Callable = utcnow):
        self.store = store
        self.col = store.donations
        self.notifier = notifier
        self.clock = clock

    async def get(self, donation_id: str) -> dict:
        doc = await self.col.get(donation_id)
        if not doc:
            raise NotFoundError("Donation not found")
        return doc

    async def list(self, donor_id: Optional[str] = None, status: Optional[str] = None,
                   skip: int = 0, limit: int = 0) -> List[dict]:
        flt = {}
        if donor_id:
            flt["donor_id"] = donor_id
        if status:
            flt["status"] = status
        return await self.col.find(flt, sort=[("created_at", -1)], skip=skip, limit=limit)

    async def list_available(self, skip: int = 0, limit: int = 0) -> List[dict]:
        return await self.col.find({"status": "pending"}, sort=[("created_at", -1)], skip=skip, limit=limit)

    async def create(self, donor_id: str, fields: dict) -> dict:
        data = parse_payload(DonationCreate, fields)
        now = self.clock()
        doc = {
            **data.model_dump(),
            "donor_id": donor_id,
            "status": "pending",
            "accepted_by": None,
            "assigned_to": None,
            "accepted_at": None,
            "picked_up_at": None,
            "delivered_at": None,
            "cancelled_at": None,
            "created_at": now,
            "updated_at": now,
        }
        saved = await self.col.insert(doc)
        logger.info(f"Donation {saved['_id']} created by donor {donor_id}")
        return saved

    async def _editable(self, donation_id: str, donor_id: str, verb: str) -> dict:
        doc = await self.get(donation_id)
        if doc.get("donor_id") != donor_id:
            raise ForbiddenError(f"Not authorized to {verb} this donation")
        if doc.get("status") in LOCKED_DONATION:
            raise ConflictError(f"Cannot {verb} donation after it has been accepted")
        return doc

    async def update(self, donation_id: str, donor_id: str, fields: dict) -> dict:
        doc = await self._editable(donation_id, donor_id, "update")
        patch = parse_payload(DonationUpdate, fields).model_dump(exclude_unset=True)
        patch = {k: v for k, v in patch.items() if v is not None}
        patch["updated_at"] = self.clock()
        saved = await self.col.update(donation_id, patch, expect={"status": doc["status"]})
        if saved is None:
            raise ConflictError("Donation changed while updating; refresh and retry")
        return saved

    async def delete(self, donation_id: str, donor_id: str) -> None:
        await self._editable(donation_id, donor_id, "delete")
        await self.col.delete(donation_id)
        logger.info(f"Donation {donation_id} deleted by donor {donor_id}")

    async def accept(self, donation_id: str, actor_id: str) -> dict:
        await self.get(donation_id)
        now = self.clock()
        saved = await self.col.update(
            donation_id,
            {"status": "accepted", "assigned_to": actor_id, "accepted_at": now, "updated_at": now},
            expect={"status": "pending"},
        )
        if saved is None:
            raise ConflictError("Donation is not available")
        logger.info(f"Donation {donation_id} accepted directly by {actor_id}")
        await notify_quietly(self.notifier, saved.get("donor_id"), "Donation Accepted",
                             f"Your donation '{saved.get('food_name')}' has been accepted.",
                             "status_update", {"donation_id": donation_id})
        return saved

    async def _advance(self, donation_id: str, actor_id: str, status: str, stamp: str) -> dict:
        doc = await self.get(donation_id)
        if doc.get("assigned_to") != actor_id:
            raise ForbiddenError("Not authorized")
        ensure_transition("donation", doc["status"], status)
        now = self.clock()
        saved = await self.col.update(
            donation_id, {"status": status, stamp: now, "updated_at": now},
            expect={"status": doc["status"]},
        )
        if saved is None:
            raise ConflictError("Donation changed while updating; refresh and retry")
        return saved

    async def mark_picked_up(self, donation_id: str, actor_id: str) -> dict:
        saved = await self._advance(donation_id, actor_id, "picked_up", "picked_up_at")
        await sync.apply_mirrors(self.store, sync.plan_donation_picked_up(donation_id, saved["picked_up_at"]),
                                 f"donation {donation_id} pickup")
        logger.info(f"Donation {donation_id} picked up by {actor_id}")
        return saved

    async def mark_delivered(self, donation_id: str, actor_id: str) -> dict:
        saved = await self._advance(donation_id, actor_id, "delivered", "delivered_at")
        await sync.apply_mirrors(self.store, sync.plan_donation_delivered(donation_id, saved["delivered_at"]),
                                 f"donation {donation_id} delivery")
        logger.info(f"Donation {donation_id} delivered by {actor_id}")
        await notify_quietly(self.notifier, saved.get("donor_id"), "Donation Delivered",
                             f"Your donation '{saved.get('food_name')}' has been delivered.",
                             "status_update", {"donation_id": donation_id})
        return saved

    async def cancel(self, donation_id: str, donor_id: str, reason: Optional[str] = None) -> dict:
        doc = await self.get(donation_id)
        if doc.get("donor_id") != donor_id:
            raise ForbiddenError("Not authorized to cancel this donation")
        if doc.get("status") in TERMINAL_DONATION:
            raise ConflictError(f"Donation is already {doc['status']}")
        now = self.clock()
        saved = await self.col.update(
            donation_id,
            {"status": "cancelled", "cancelled_at": now, "cancellation_reason": reason or "", "updated_at": now},
            expect={"status": doc["status"]},
        )
        if saved is None:
            raise ConflictError("Donation changed while cancelling; refresh and retry")
        await sync.apply_mirrors(self.store, sync.plan_donation_cancelled(donation_id, reason or "", now),
                                 f"donation {donation_id} cancel")
        logger.info(f"Donation {donation_id} cancelled by donor {donor_id}")
        for recipient in {doc.get("accepted_by"), doc.get("assigned_to")} - {None}:
            await notify_quietly(self.notifier, recipient, "Donation Cancelled",
                                 f"Donation '{doc.get('food_name')}' was cancelled by the donor.",
                                 "status_update", {"donation_id": donation_id})
        return saved
