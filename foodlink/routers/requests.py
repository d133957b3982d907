# foodlink/routers/requests.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from foodlink.core.security import require_roles
from foodlink.core.serialize import assignment_out, public
from foodlink.deps import get_requests
from foodlink.models.schemas import AssignVolunteerIn, ReasonIn, RequestIn
from foodlink.services.requests import RequestLifecycle

router = APIRouter(prefix="/api/requests", tags=["requests"])

ngo_only = require_roles("ngo")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_request(
    body: RequestIn,
    user=Depends(ngo_only),
    svc: RequestLifecycle = Depends(get_requests),
):
    return public(await svc.create(user["_id"], body.donation_id, body.notes))


@router.get("")
async def list_requests(
    status_q: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(0, ge=0, le=200),
    user=Depends(ngo_only),
    svc: RequestLifecycle = Depends(get_requests),
):
    return [public(r) for r in await svc.list_for(user["_id"], status_q, skip, limit)]


@router.get("/{request_id}")
async def get_request(request_id: str, user=Depends(ngo_only), svc: RequestLifecycle = Depends(get_requests)):
    return public(await svc.get_owned(request_id, user["_id"]))


@router.put("/{request_id}/accept")
async def accept_request(request_id: str, user=Depends(ngo_only), svc: RequestLifecycle = Depends(get_requests)):
    return public(await svc.accept(request_id, user["_id"]))


@router.put("/{request_id}/assign-volunteer")
async def assign_volunteer(
    request_id: str,
    body: AssignVolunteerIn,
    user=Depends(ngo_only),
    svc: RequestLifecycle = Depends(get_requests),
):
    request, assignment = await svc.assign_volunteer(request_id, user["_id"], body.volunteer_id)
    return {"request": public(request), "assignment": assignment_out(assignment)}


@router.put("/{request_id}/pickup")
async def pickup_request(request_id: str, user=Depends(ngo_only), svc: RequestLifecycle = Depends(get_requests)):
    return public(await svc.pickup(request_id, user["_id"]))


@router.put("/{request_id}/deliver")
async def deliver_request(request_id: str, user=Depends(ngo_only), svc: RequestLifecycle = Depends(get_requests)):
    return public(await svc.deliver(request_id, user["_id"]))


@router.put("/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    body: Optional[ReasonIn] = None,
    user=Depends(ngo_only),
    svc: RequestLifecycle = Depends(get_requests),
):
    return public(await svc.cancel(request_id, user["_id"], body.reason if body else None))


@router.delete("/{request_id}")
async def delete_request(request_id: str, user=Depends(ngo_only), svc: RequestLifecycle = Depends(get_requests)):
    await svc.delete(request_id, user["_id"])
    return {"ok": True, "message": "Request deleted successfully"}
