# foodlink/services/assignments.py
import logging
from typing import Callable, List, Optional

from foodlink.core.clock import utcnow
from foodlink.core.errors import (
    ConflictError, ForbiddenError, NotFoundError, ValidationError, parse_payload,
)
from foodlink.core.states import ensure_transition
from foodlink.models.user import VolunteerProfileUpdate
from foodlink.services import matching, sync
from foodlink.services.notifier import Notifier, notify_quietly

logger = logging.getLogger(__name__)


class AssignmentLifecycle:
    """
    Owns Assignment.status.

    Two ways in: an NGO/admin assigns a volunteer (``create_assignment``,
    status pending) or a volunteer claims an accepted donation
    (``claim_assignment``, status accepted). Both leave the donation in
    ``assigned`` with ``assigned_to`` set. The first location ping moves an
    accepted assignment to in_transit; completion delivers the donation.
    """

    def __init__(self, store, notifier: Optional[Notifier] = None, clock: Callable = utcnow):
        self.store = store
        self.col = store.assignments
        self.notifier = notifier
        self.clock = clock

    # ---------- reads ----------
    async def get(self, assignment_id: str) -> dict:
        doc = await self.col.get(assignment_id)
        if not doc:
            raise NotFoundError("Assignment not found")
        return doc

    async def get_visible(self, assignment_id: str, actor: dict) -> dict:
        """Readable by its volunteer, the donor, the accepting NGO or an admin."""
        doc = await self.get(assignment_id)
        if actor.get("role") == "admin" or actor["_id"] in (doc["volunteer_id"], doc.get("donor_id")):
            return doc
        donation = await self.store.donations.get(doc["donation_id"]) or {}
        if actor["_id"] != donation.get("accepted_by"):
            raise ForbiddenError("Not authorized for this assignment")
        return doc

    async def list_all(self, status: Optional[str] = None, skip: int = 0, limit: int = 0) -> List[dict]:
        flt = {"status": status} if status else {}
        return await self.col.find(flt, sort=[("created_at", -1)], skip=skip, limit=limit)

    async def list_for_volunteer(self, volunteer_id: str, status: Optional[str] = None) -> List[dict]:
        flt = {"volunteer_id": volunteer_id}
        if status:
            flt["status"] = status
        return await self.col.find(flt, sort=[("created_at", -1)])

    async def available_for(self, volunteer: dict) -> List[dict]:
        return await matching.available_for(self.store, volunteer, self.clock())

    # ---------- creation ----------
    async def _volunteer(self, volunteer_id: str) -> dict:
        volunteer = await self.store.users.get(volunteer_id)
        if not volunteer:
            raise NotFoundError("Volunteer not found")
        if volunteer.get("role") != "volunteer":
            raise ValidationError("User is not a volunteer")
        return volunteer

    async def _attach(self, donation: dict, volunteer: dict, status: str, expect: dict) -> dict:
        """Insert the assignment, then take the donation with a compare-and-swap."""
        now = self.clock()
        doc = {
            "donation_id": donation["_id"],
            "volunteer_id": volunteer["_id"],
            "donor_id": donation.get("donor_id"),
            "status": status,
            "current_location": {"lat": None, "lng": None, "last_updated": None},
            "assigned_at": now,
            "accepted_at": now if status == "accepted" else None,
            "started_at": None,
            "completed_at": None,
            "cancelled_at": None,
            "completion_notes": None,
            "rating": None,
            "cancellation_reason": None,
            "created_at": now,
            "updated_at": now,
        }
        # unique index on active assignments per donation turns a lost race into ConflictError
        assignment = await self.col.insert(doc)

        taken = await self.store.donations.update(
            donation["_id"],
            {"status": "assigned", "assigned_to": volunteer["_id"], "updated_at": now},
            expect=expect,
        )
        if taken is None:
            await self.col.update(assignment["_id"], {
                "status": "cancelled", "cancelled_at": now,
                "cancellation_reason": "donation no longer available", "updated_at": now,
            })
            raise ConflictError("Donation is no longer available")

        await sync.apply_mirrors(self.store, sync.plan_assigned(assignment, now),
                                 f"assignment {assignment['_id']} attach")
        return assignment

    async def create_assignment(self, donation_id: str, volunteer_id: str, actor_id: str) -> dict:
        donation = await self.store.donations.get(donation_id)
        if not donation:
            raise NotFoundError("Donation not found")
        volunteer = await self._volunteer(volunteer_id)
        if donation.get("status") not in ("pending", "accepted"):
            raise ConflictError("Donation is not available for assignment")
        if await self.col.find_one(sync.active_assignment(donation_id)):
            raise ConflictError("Donation already has an active assignment")
        matching.ensure_can_take(donation, volunteer, self.clock())

        assignment = await self._attach(
            donation, volunteer, "pending",
            expect={"status": donation["status"], "assigned_to": donation.get("assigned_to")},
        )
        logger.info(f"Assignment {assignment['_id']} created by {actor_id}: "
                    f"donation {donation_id} -> volunteer {volunteer_id}")
        await notify_quietly(self.notifier, volunteer_id, "New Assignment",
                             f"You have been assigned to pick up '{donation.get('food_name')}'.",
                             "new_assignment",
                             {"assignment_id": assignment["_id"], "donation_id": donation_id})
        return assignment

    async def claim_assignment(self, donation_id: str, volunteer_id: str) -> dict:
        donation = await self.store.donations.get(donation_id)
        if not donation:
            raise NotFoundError("Donation not found")
        if donation.get("status") != "accepted" or donation.get("assigned_to"):
            raise ConflictError("Donation is no longer available")
        volunteer = await self._volunteer(volunteer_id)
        matching.ensure_can_take(donation, volunteer, self.clock())

        assignment = await self._attach(donation, volunteer, "accepted",
                                        expect={"status": "accepted", "assigned_to": None})
        logger.info(f"Donation {donation_id} claimed by volunteer {volunteer_id}")
        await notify_quietly(self.notifier, donation.get("accepted_by"), "Volunteer Assigned",
                             f"{volunteer.get('full_name', 'A volunteer')} will pick up "
                             f"'{donation.get('food_name')}'.",
                             "assignment_update",
                             {"assignment_id": assignment["_id"], "donation_id": donation_id})
        return assignment

    # ---------- transitions ----------
    async def _own(self, assignment_id: str, volunteer_id: str) -> dict:
        doc = await self.get(assignment_id)
        if doc["volunteer_id"] != volunteer_id:
            raise ForbiddenError("Not authorized for this assignment")
        return doc

    async def accept_assignment(self, assignment_id: str, volunteer_id: str) -> dict:
        doc = await self._own(assignment_id, volunteer_id)
        ensure_transition("assignment", doc["status"], "accepted", "Assignment cannot be accepted")
        now = self.clock()
        saved = await self.col.update(assignment_id, {"status": "accepted", "accepted_at": now, "updated_at": now},
                                      expect={"status": "pending"})
        if saved is None:
            raise ConflictError("Assignment cannot be accepted")
        logger.info(f"Assignment {assignment_id} accepted by volunteer {volunteer_id}")
        return saved

    async def update_location(self, assignment_id: str, volunteer_id: str, lat: float, lng: float) -> dict:
        doc = await self._own(assignment_id, volunteer_id)
        now = self.clock()
        location = {"current_location": {"lat": lat, "lng": lng, "last_updated": now}, "updated_at": now}

        if doc["status"] in ("accepted", "assigned") and not doc.get("started_at"):
            started = await self.col.update(
                assignment_id, {**location, "status": "in_transit", "started_at": now},
                expect={"status": doc["status"], "started_at": None},
            )
            if started is not None:
                await sync.apply_mirrors(self.store, sync.plan_in_transit(started, now),
                                         f"assignment {assignment_id} start")
                logger.info(f"Assignment {assignment_id} in transit")
                return started

        saved = await self.col.update(assignment_id, location)
        if saved is None:
            raise NotFoundError("Assignment not found")
        return saved

    async def complete_assignment(self, assignment_id: str, volunteer_id: str,
                                  notes: Optional[str] = None, rating: Optional[int] = None) -> dict:
        doc = await self._own(assignment_id, volunteer_id)
        if doc["status"] not in ("in_transit", "accepted"):
            raise ConflictError("Assignment cannot be completed")
        if rating is not None and (isinstance(rating, bool) or not 1 <= rating <= 5):
            raise ValidationError("Rating must be between 1 and 5")
        now = self.clock()
        saved = await self.col.update(assignment_id, {
            "status": "completed",
            "completed_at": now,
            "completion_notes": notes or "",
            "rating": rating,
            "updated_at": now,
        }, expect={"status": doc["status"]})
        if saved is None:
            raise ConflictError("Assignment cannot be completed")

        await sync.apply_mirrors(self.store, sync.plan_completed(saved, now),
                                 f"assignment {assignment_id} complete")
        logger.info(f"Assignment {assignment_id} completed")

        donation = await self.store.donations.get(saved["donation_id"]) or {}
        name = donation.get("food_name", "your donation")
        data = {"assignment_id": assignment_id, "donation_id": saved["donation_id"]}
        await notify_quietly(self.notifier, saved.get("donor_id"), "Donation Delivered",
                             f"'{name}' has been delivered.", "status_update", data)
        await notify_quietly(self.notifier, donation.get("accepted_by"), "Donation Delivered",
                             f"'{name}' has been delivered to your organization.", "status_update", data)
        return saved

    async def cancel_assignment(self, assignment_id: str, actor: dict, reason: Optional[str] = None) -> dict:
        doc = await self.get(assignment_id)
        donation = await self.store.donations.get(doc["donation_id"])
        allowed = (
            actor.get("role") == "admin"
            or actor["_id"] == doc["volunteer_id"]
            or (donation is not None and actor["_id"] == donation.get("accepted_by"))
        )
        if not allowed:
            raise ForbiddenError("Not authorized for this assignment")
        if doc["status"] == "completed":
            raise ConflictError("Completed assignment cannot be cancelled")
        ensure_transition("assignment", doc["status"], "cancelled", "Assignment is already cancelled")

        now = self.clock()
        saved = await self.col.update(assignment_id, {
            "status": "cancelled",
            "cancelled_at": now,
            "cancellation_reason": reason or "",
            "updated_at": now,
        }, expect={"status": doc["status"]})
        if saved is None:
            raise ConflictError("Assignment changed while cancelling; refresh and retry")

        await sync.apply_mirrors(self.store, sync.plan_assignment_cancelled(saved, donation, now),
                                 f"assignment {assignment_id} cancel")
        logger.info(f"Assignment {assignment_id} cancelled by {actor['_id']}")
        if donation:
            await notify_quietly(self.notifier, donation.get("accepted_by"), "Assignment Cancelled",
                                 f"The pickup of '{donation.get('food_name')}' was cancelled.",
                                 "assignment_update",
                                 {"assignment_id": assignment_id, "donation_id": donation["_id"],
                                  "reason": reason or ""})
        return saved

    # ---------- volunteer profile ----------
    async def update_volunteer_profile(self, user_id: str, fields: dict) -> dict:
        user = await self.store.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.get("role") != "volunteer":
            raise ForbiddenError("Only volunteers have a volunteer profile")
        data = parse_payload(VolunteerProfileUpdate, fields).model_dump(exclude_unset=True, exclude_none=True)

        patch = {}
        if "is_available" in data:
            patch["is_available"] = data.pop("is_available")
        if data:
            profile = dict(user.get("profile") or {"role": "volunteer"})
            profile.update(data)
            patch["profile"] = profile
        patch["updated_at"] = self.clock()
        return await self.store.users.update(user_id, patch)
