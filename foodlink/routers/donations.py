# foodlink/routers/donations.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from foodlink.core.errors import ForbiddenError
from foodlink.core.security import get_current_user, require_roles
from foodlink.core.serialize import donation_out
from foodlink.deps import get_donations
from foodlink.models.schemas import ReasonIn
from foodlink.services.donations import DonationLifecycle

router = APIRouter(prefix="/api/donations", tags=["donations"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_donation(
    payload: dict = Body(...),
    user=Depends(require_roles("donor")),
    svc: DonationLifecycle = Depends(get_donations),
):
    return donation_out(await svc.create(user["_id"], payload))


@router.get("")
async def list_donations(
    status_q: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(0, ge=0, le=200),
    user=Depends(get_current_user),
    svc: DonationLifecycle = Depends(get_donations),
):
    # donors only ever see their own donations
    donor_id = user["_id"] if user.get("role") == "donor" else None
    docs = await svc.list(donor_id=donor_id, status=status_q, skip=skip, limit=limit)
    return [donation_out(d) for d in docs]


@router.get("/available")
async def list_available(
    skip: int = Query(0, ge=0),
    limit: int = Query(0, ge=0, le=200),
    user=Depends(get_current_user),
    svc: DonationLifecycle = Depends(get_donations),
):
    return [donation_out(d) for d in await svc.list_available(skip=skip, limit=limit)]


@router.get("/{donation_id}")
async def get_donation(
    donation_id: str,
    user=Depends(get_current_user),
    svc: DonationLifecycle = Depends(get_donations),
):
    doc = await svc.get(donation_id)
    if user.get("role") == "donor" and doc.get("donor_id") != user["_id"]:
        raise ForbiddenError("Not authorized to access this donation")
    return donation_out(doc)


@router.put("/{donation_id}")
async def update_donation(
    donation_id: str,
    payload: dict = Body(...),
    user=Depends(require_roles("donor")),
    svc: DonationLifecycle = Depends(get_donations),
):
    return donation_out(await svc.update(donation_id, user["_id"], payload))


@router.delete("/{donation_id}")
async def delete_donation(
    donation_id: str,
    user=Depends(require_roles("donor")),
    svc: DonationLifecycle = Depends(get_donations),
):
    await svc.delete(donation_id, user["_id"])
    return {"ok": True, "message": "Donation deleted successfully"}


# ---------- Status updates ----------
@router.put("/{donation_id}/accept")
async def accept_donation(
    donation_id: str,
    user=Depends(require_roles("ngo", "volunteer")),
    svc: DonationLifecycle = Depends(get_donations),
):
    return donation_out(await svc.accept(donation_id, user["_id"]))


@router.put("/{donation_id}/pickup")
async def mark_picked_up(
    donation_id: str,
    user=Depends(get_current_user),
    svc: DonationLifecycle = Depends(get_donations),
):
    return donation_out(await svc.mark_picked_up(donation_id, user["_id"]))


@router.put("/{donation_id}/deliver")
async def mark_delivered(
    donation_id: str,
    user=Depends(get_current_user),
    svc: DonationLifecycle = Depends(get_donations),
):
    return donation_out(await svc.mark_delivered(donation_id, user["_id"]))


@router.put("/{donation_id}/cancel")
async def cancel_donation(
    donation_id: str,
    body: Optional[ReasonIn] = None,
    user=Depends(require_roles("donor")),
    svc: DonationLifecycle = Depends(get_donations),
):
    return donation_out(await svc.cancel(donation_id, user["_id"], body.reason if body else None))
