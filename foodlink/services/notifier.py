# foodlink/services/notifier.py
import logging
from typing import Any, Dict, List, Optional

from foodlink.core.clock import utcnow
from foodlink.core.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {"new_assignment", "assignment_update", "status_update", "general"}


class Notifier:
    """Stores in-app notifications. Lifecycles go through ``notify_quietly``."""

    def __init__(self, store):
        self.col = store.notifications

    async def notify(self, recipient_id: str, title: str, message: str,
                     type_: str = "general", data: Optional[Dict[str, Any]] = None) -> dict:
        if type_ not in NOTIFICATION_TYPES:
            type_ = "general"
        return await self.col.insert({
            "recipient_id": recipient_id,
            "title": title,
            "message": message,
            "type": type_,
            "data": data or {},
            "is_read": False,
            "created_at": utcnow(),
        })

    async def list_for(self, recipient_id: str, limit: int = 50) -> List[dict]:
        return await self.col.find({"recipient_id": recipient_id}, sort=[("created_at", -1)], limit=limit)

    async def unread_count(self, recipient_id: str) -> int:
        return await self.col.count({"recipient_id": recipient_id, "is_read": False})

    async def _owned(self, notification_id: str, recipient_id: str) -> dict:
        doc = await self.col.get(notification_id)
        if not doc:
            raise NotFoundError("Notification not found")
        if doc["recipient_id"] != recipient_id:
            raise ForbiddenError("Not authorized")
        return doc

    async def mark_read(self, notification_id: str, recipient_id: str) -> dict:
        await self._owned(notification_id, recipient_id)
        return await self.col.update(notification_id, {"is_read": True})

    async def mark_all_read(self, recipient_id: str) -> int:
        return await self.col.update_many({"recipient_id": recipient_id, "is_read": False}, {"is_read": True})

    async def delete(self, notification_id: str, recipient_id: str) -> None:
        await self._owned(notification_id, recipient_id)
        await self.col.delete(notification_id)


async def notify_quietly(notifier: Optional[Notifier], recipient_id: Optional[str], title: str,
                         message: str, type_: str = "general", data: Optional[dict] = None) -> None:
    if notifier is None or not recipient_id:
        return
    try:
        await notifier.notify(recipient_id, title, message, type_, data)
    except Exception as ex:
        logger.error(f"Notification '{title}' to {recipient_id} failed", exc_info=ex)
