# foodlink/routers/assignments.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from foodlink.core.errors import ForbiddenError
from foodlink.core.security import get_current_user, require_roles
from foodlink.core.serialize import assignment_out, donation_out, public
from foodlink.deps import get_assignments
from foodlink.models.schemas import AssignmentCreateIn, ClaimIn, CompleteIn, LocationIn, ReasonIn
from foodlink.services.assignments import AssignmentLifecycle

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

volunteer_only = require_roles("volunteer")


@router.get("/available")
async def available(user=Depends(volunteer_only), svc: AssignmentLifecycle = Depends(get_assignments)):
    return [donation_out(d) for d in await svc.available_for(user)]


@router.post("/claim", status_code=status.HTTP_201_CREATED)
async def claim(body: ClaimIn, user=Depends(volunteer_only), svc: AssignmentLifecycle = Depends(get_assignments)):
    return assignment_out(await svc.claim_assignment(body.donation_id, user["_id"]))


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create(
    body: AssignmentCreateIn,
    user=Depends(require_roles("ngo", "admin")),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    return assignment_out(await svc.create_assignment(body.donation_id, body.volunteer_id, user["_id"]))


@router.get("")
async def list_all(
    status_q: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(0, ge=0, le=200),
    user=Depends(require_roles("admin")),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    return [assignment_out(a) for a in await svc.list_all(status_q, skip, limit)]


@router.put("/volunteer-profile")
async def update_volunteer_profile(
    payload: dict = Body(...),
    user=Depends(volunteer_only),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    return public(await svc.update_volunteer_profile(user["_id"], payload))


@router.get("/volunteer/{volunteer_id}")
async def for_volunteer(
    volunteer_id: str,
    status_q: Optional[str] = Query(None, alias="status"),
    user=Depends(get_current_user),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    if user.get("role") == "volunteer" and user["_id"] != volunteer_id:
        raise ForbiddenError("Volunteers can only list their own assignments")
    return [assignment_out(a) for a in await svc.list_for_volunteer(volunteer_id, status_q)]


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: str, user=Depends(get_current_user),
                         svc: AssignmentLifecycle = Depends(get_assignments)):
    return assignment_out(await svc.get_visible(assignment_id, user))


@router.put("/{assignment_id}/accept")
async def accept(assignment_id: str, user=Depends(volunteer_only),
                 svc: AssignmentLifecycle = Depends(get_assignments)):
    return assignment_out(await svc.accept_assignment(assignment_id, user["_id"]))


@router.put("/{assignment_id}/update-location")
async def update_location(
    assignment_id: str,
    body: LocationIn,
    user=Depends(volunteer_only),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    return assignment_out(await svc.update_location(assignment_id, user["_id"], body.lat, body.lng))


@router.put("/{assignment_id}/complete")
async def complete(
    assignment_id: str,
    body: Optional[CompleteIn] = None,
    user=Depends(volunteer_only),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    body = body or CompleteIn()
    return assignment_out(await svc.complete_assignment(assignment_id, user["_id"], body.notes, body.rating))


@router.put("/{assignment_id}/cancel")
async def cancel(
    assignment_id: str,
    body: Optional[ReasonIn] = None,
    user=Depends(get_current_user),
    svc: AssignmentLifecycle = Depends(get_assignments),
):
    return assignment_out(await svc.cancel_assignment(assignment_id, user, body.reason if body else None))
