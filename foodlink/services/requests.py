# foodlink/services/requests.py
import logging
from typing import Callable, List, Optional, Tuple

from foodlink.core.clock import utcnow
from foodlink.core.errors import ConflictError, ForbiddenError, NotFoundError
from foodlink.core.states import ensure_transition
from foodlink.services import sync
from foodlink.services.assignments import AssignmentLifecycle
from foodlink.services.notifier import Notifier, notify_quietly

logger = logging.getLogger(__name__)


class RequestLifecycle:
    """An NGO's claim on a donation, from request through delivery."""

    def __init__(self, store, assignments: AssignmentLifecycle,
                 notifier: Optional[Notifier] = None, clock: Callable = utcnow):
        self.store = store
        self.col = store.requests
        self.assignments = assignments
        self.notifier = notifier
        self.clock = clock

    async def list_for(self, ngo_id: str, status: Optional[str] = None,
                       skip: int = 0, limit: int = 0) -> List[dict]:
        flt = {"ngo_id": ngo_id}
        if status:
            flt["status"] = status
        return await self.col.find(flt, sort=[("created_at", -1)], skip=skip, limit=limit)

    async def get_owned(self, request_id: str, ngo_id: str) -> dict:
        doc = await self.col.get(request_id)
        if not doc:
            raise NotFoundError("Request not found")
        if doc["ngo_id"] != ngo_id:
            raise ForbiddenError("Not authorized to access this request")
        return doc

    async def create(self, ngo_id: str, donation_id: str, notes: Optional[str] = None) -> dict:
        donation = await self.store.donations.get(donation_id)
        if not donation:
            raise NotFoundError("Donation not found")
        if donation.get("status") != "pending":
            raise ConflictError("This donation is no longer available")
        if await self.col.find_one({"donation_id": donation_id, "ngo_id": ngo_id}):
            raise ConflictError("You have already requested this donation")

        now = self.clock()
        saved = await self.col.insert({
            "donation_id": donation_id,
            "ngo_id": ngo_id,
            "volunteer_id": None,
            "assignment_id": None,
            "status": "pending",
            "notes": notes,
            "requested_at": now,
            "accepted_at": None,
            "assigned_at": None,
            "picked_up_at": None,
            "delivered_at": None,
            "cancelled_at": None,
            "cancellation_reason": None,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Request {saved['_id']} created by NGO {ngo_id} for donation {donation_id}")
        return saved

    async def accept(self, request_id: str, ngo_id: str) -> dict:
        doc = await self.get_owned(request_id, ngo_id)
        ensure_transition("request", doc["status"], "accepted", "Only pending requests can be accepted")

        now = self.clock()
        # the donation is the contended resource: take it first
        donation = await self.store.donations.update(
            doc["donation_id"],
            {"status": "accepted", "accepted_by": ngo_id, "accepted_at": now, "updated_at": now},
            expect={"status": "pending"},
        )
        if donation is None:
            if not await self.store.donations.get(doc["donation_id"]):
                raise NotFoundError("Donation not found")
            raise ConflictError("This donation is no longer available")

        saved = await self.col.update(request_id, {"status": "accepted", "accepted_at": now, "updated_at": now},
                                      expect={"status": "pending"})
        if saved is None:
            # request moved underneath us; hand the donation back
            await self.store.donations.update(
                doc["donation_id"],
                {"status": "pending", "accepted_by": None, "accepted_at": None, "updated_at": now},
                expect={"status": "accepted", "accepted_by": ngo_id},
            )
            raise ConflictError("Request changed while accepting; refresh and retry")

        logger.info(f"Request {request_id} accepted; donation {doc['donation_id']} accepted by NGO {ngo_id}")
        await notify_quietly(self.notifier, donation.get("donor_id"), "Donation Accepted",
                             f"Your donation '{donation.get('food_name')}' has been accepted.",
                             "status_update", {"donation_id": donation["_id"], "request_id": request_id})
        return saved

    async def assign_volunteer(self, request_id: str, ngo_id: str, volunteer_id: str) -> Tuple[dict, dict]:
        doc = await self.get_owned(request_id, ngo_id)
        if doc["status"] != "accepted":
            raise ConflictError("Can only assign volunteers to accepted requests")

        assignment = await self.assignments.create_assignment(doc["donation_id"], volunteer_id, ngo_id)
        saved = await self.col.update(request_id, {
            "status": "assigned",
            "volunteer_id": volunteer_id,
            "assignment_id": assignment["_id"],
            "assigned_at": assignment["assigned_at"],
            "updated_at": self.clock(),
        })
        return saved or doc, assignment

    async def _advance(self, request_id: str, ngo_id: str, status: str, stamp: str) -> dict:
        doc = await self.get_owned(request_id, ngo_id)
        ensure_transition("request", doc["status"], status)
        now = self.clock()
        saved = await self.col.update(request_id, {"status": status, stamp: now, "updated_at": now},
                                      expect={"status": doc["status"]})
        if saved is None:
            raise ConflictError("Request changed while updating; refresh and retry")
        await sync.apply_mirrors(self.store, sync.plan_request_mirror(saved, status, now),
                                 f"request {request_id} {status}")
        logger.info(f"Request {request_id} {status}")
        return saved

    async def pickup(self, request_id: str, ngo_id: str) -> dict:
        return await self._advance(request_id, ngo_id, "picked_up", "picked_up_at")

    async def deliver(self, request_id: str, ngo_id: str) -> dict:
        return await self._advance(request_id, ngo_id, "delivered", "delivered_at")

    async def cancel(self, request_id: str, ngo_id: str, reason: Optional[str] = None) -> dict:
        doc = await self.get_owned(request_id, ngo_id)
        prior = doc["status"]
        ensure_transition("request", prior, "cancelled", f"Request is already {prior}")
        now = self.clock()
        saved = await self.col.update(request_id, {
            "status": "cancelled",
            "cancelled_at": now,
            "cancellation_reason": reason,
            "updated_at": now,
        }, expect={"status": prior})
        if saved is None:
            raise ConflictError("Request changed while cancelling; refresh and retry")
        await sync.apply_mirrors(self.store, sync.plan_request_cancelled(saved, prior, now),
                                 f"request {request_id} cancel")
        logger.info(f"Request {request_id} cancelled (was {prior})")
        return saved

    async def delete(self, request_id: str, ngo_id: str) -> None:
        doc = await self.get_owned(request_id, ngo_id)
        if doc["status"] != "pending":
            raise ConflictError("Can only delete pending requests")
        await self.col.delete(request_id)
