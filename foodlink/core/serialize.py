from datetime import datetime
from typing import Optional

from foodlink.core.clock import utcnow
from foodlink.models.donation import is_expired, remaining_time


def public(doc: Optional[dict]) -> dict:
    if not doc:
        return {}
    out = {k: v for k, v in doc.items() if k != "_id"}
    return {"id": str(doc.get("_id")), **out}


def donation_out(doc: dict, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    out = public(doc)
    out["is_expired"] = is_expired(doc, now)
    out["remaining_time"] = remaining_time(doc, now)
    return out


def _duration(start, end) -> Optional[str]:
    if not start or not end:
        return None
    minutes = int((end - start).total_seconds() // 60)
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if hours > 0 else f"{minutes}m"


def assignment_out(doc: dict) -> dict:
    out = public(doc)
    out["duration"] = _duration(doc.get("accepted_at"), doc.get("completed_at"))
    return out
