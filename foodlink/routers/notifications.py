from fastapi import APIRouter, Depends

from foodlink.core.security import get_current_user
from foodlink.core.serialize import public
from foodlink.deps import get_notifier
from foodlink.services.notifier import Notifier

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(user=Depends(get_current_user), notifier: Notifier = Depends(get_notifier)):
    return [public(n) for n in await notifier.list_for(user["_id"])]


@router.get("/unread-count")
async def unread_count(user=Depends(get_current_user), notifier: Notifier = Depends(get_notifier)):
    return {"count": await notifier.unread_count(user["_id"])}


@router.put("/read-all")
@router.put("/mark-all-read", include_in_schema=False)
async def mark_all_read(user=Depends(get_current_user), notifier: Notifier = Depends(get_notifier)):
    updated = await notifier.mark_all_read(user["_id"])
    return {"ok": True, "updated": updated}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, user=Depends(get_current_user),
                    notifier: Notifier = Depends(get_notifier)):
    return public(await notifier.mark_read(notification_id, user["_id"]))


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user=Depends(get_current_user),
                              notifier: Notifier = Depends(get_notifier)):
    await notifier.delete(notification_id, user["_id"])
    return {"ok": True}
