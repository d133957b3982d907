# foodlink/services/sync.py
"""
Cross-entity sync.

Every lifecycle transition writes its primary entity first, then hands the
mirrored writes for the other two entities to ``apply_mirrors`` as a list of
``Patch`` intents. The planners below are pure: they only look at the docs
they are given and the timestamp, which keeps the cascade rules testable
without a store.

Mirrors are best-effort. A failed mirror is logged and skipped; it never
unwinds the primary write.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from foodlink.core.states import ACTIVE_ASSIGNMENT, LIVE_REQUEST, sources

logger = logging.getLogger(__name__)


@dataclass
class Patch:
    entity: str                  # "donations" | "requests" | "assignments"
    fields: dict
    doc_id: Optional[str] = None
    where: Optional[dict] = None  # used when the target id is not known up front
    expect: Optional[dict] = None  # compare-and-swap guard for doc_id patches
    many: bool = False
    note: str = field(default="", compare=False)


def live_request(donation_id: str, statuses=None) -> dict:
    return {"donation_id": donation_id, "status": {"$in": list(statuses or LIVE_REQUEST)}}


def active_assignment(donation_id: str) -> dict:
    return {"donation_id": donation_id, "status": {"$in": ACTIVE_ASSIGNMENT}}


def move_donation(donation_id: str, status: str, fields: dict, note: str) -> Patch:
    """Donation mirror that only lands when ``status`` is a legal move from the current one."""
    return Patch("donations", {"status": status, **fields}, doc_id=donation_id,
                 expect={"status": {"$in": sources("donation", status)}}, note=note)


# ---------- planners ----------

def plan_assigned(assignment: dict, now: datetime) -> List[Patch]:
    """Volunteer attached to a donation (admin/NGO create, NGO assign, volunteer claim)."""
    return [
        Patch("requests", {
            "status": "assigned",
            "volunteer_id": assignment["volunteer_id"],
            "assignment_id": assignment["_id"],
            "assigned_at": now,
            "updated_at": now,
        }, where=live_request(assignment["donation_id"], ["accepted"]), note="request assigned"),
    ]


def plan_in_transit(assignment: dict, now: datetime) -> List[Patch]:
    return [
        move_donation(assignment["donation_id"], "in_transit", {"picked_up_at": now, "updated_at": now},
                      "donation in transit"),
        Patch("requests", {"status": "picked_up", "picked_up_at": now, "updated_at": now},
              where=live_request(assignment["donation_id"], ["accepted", "assigned"]),
              note="request picked up"),
    ]


def plan_completed(assignment: dict, now: datetime) -> List[Patch]:
    return [
        move_donation(assignment["donation_id"], "delivered", {"delivered_at": now, "updated_at": now},
                      "donation delivered"),
        Patch("requests", {"status": "delivered", "delivered_at": now, "updated_at": now},
              where=live_request(assignment["donation_id"]), note="request delivered"),
    ]


def plan_assignment_cancelled(assignment: dict, donation: Optional[dict], now: datetime) -> List[Patch]:
    if not donation or donation.get("status") in ("delivered", "cancelled"):
        return []
    if donation.get("assigned_to") not in (None, assignment["volunteer_id"]):
        # someone else already holds the donation
        return []
    back_to = "accepted" if donation.get("accepted_by") else "pending"
    back = move_donation(donation["_id"], back_to, {"assigned_to": None, "updated_at": now},
                         f"donation back to {back_to}")
    back.expect["assigned_to"] = {"$in": [assignment["volunteer_id"], None]}
    patches = [back]
    if back_to == "accepted":
        patches.append(Patch("requests", {
            "status": "accepted",
            "volunteer_id": None,
            "assignment_id": None,
            "assigned_at": None,
            "updated_at": now,
        }, where=live_request(donation["_id"], ["assigned", "picked_up"]), note="request back to accepted"))
    return patches


def plan_donation_picked_up(donation_id: str, now: datetime) -> List[Patch]:
    return [
        Patch("requests", {"status": "picked_up", "picked_up_at": now, "updated_at": now},
              where=live_request(donation_id, ["accepted", "assigned"]), note="request picked up"),
    ]


def plan_donation_delivered(donation_id: str, now: datetime) -> List[Patch]:
    return [
        Patch("requests", {"status": "delivered", "delivered_at": now, "updated_at": now},
              where=live_request(donation_id), note="request delivered"),
        Patch("assignments", {"status": "completed", "completed_at": now, "updated_at": now},
              where=active_assignment(donation_id), note="assignment completed"),
    ]


def plan_donation_cancelled(donation_id: str, reason: str, now: datetime) -> List[Patch]:
    return [
        Patch("assignments", {
            "status": "cancelled", "cancelled_at": now,
            "cancellation_reason": reason, "updated_at": now,
        }, where=active_assignment(donation_id), many=True, note="assignments cancelled"),
        Patch("requests", {
            "status": "cancelled", "cancelled_at": now,
            "cancellation_reason": reason, "updated_at": now,
        }, where=live_request(donation_id, ["pending", *LIVE_REQUEST]), many=True,
           note="requests cancelled"),
    ]


def plan_request_mirror(request: dict, status: str, now: datetime) -> List[Patch]:
    """Request pickup/deliver mirrored onto the donation (and its assignment on delivery)."""
    stamp = {"picked_up": "picked_up_at", "delivered": "delivered_at"}[status]
    patches = [
        move_donation(request["donation_id"], status, {stamp: now, "updated_at": now}, f"donation {status}"),
    ]
    if status == "delivered":
        patches.append(Patch("assignments", {"status": "completed", "completed_at": now, "updated_at": now},
                             where=active_assignment(request["donation_id"]), note="assignment completed"))
    return patches


def plan_request_cancelled(request: dict, prior_status: str, now: datetime) -> List[Patch]:
    # the donation is only handed back when this request was the one holding it
    if prior_status != "accepted":
        return []
    return [
        Patch("donations", {"status": "pending", "accepted_by": None, "accepted_at": None, "updated_at": now},
              where={"_id": request["donation_id"], "status": "accepted", "accepted_by": request["ngo_id"]},
              note="donation back to pending"),
    ]


# ---------- apply ----------

async def apply_mirrors(store, patches: List[Patch], label: str) -> int:
    """Apply patches in order; returns how many of them touched a document."""
    applied = 0
    for p in patches:
        col = getattr(store, p.entity)
        try:
            if p.doc_id is not None:
                hit = await col.update(p.doc_id, p.fields, expect=p.expect) is not None
            elif p.many:
                hit = await col.update_many(p.where, p.fields) > 0
            else:
                hit = await col.update_where(p.where, p.fields) is not None
        except Exception as ex:
            logger.error(f"{label}: mirror '{p.note or p.entity}' failed", exc_info=ex)
            continue
        if hit:
            applied += 1
        else:
            logger.info(f"{label}: mirror '{p.note or p.entity}' skipped, no document in a legal state")
    return applied
