# foodlink/services/matching.py
from datetime import datetime
from typing import List, Optional

from foodlink.core.errors import ValidationError
from foodlink.models.donation import is_expired
from foodlink.models.user import WEEKDAYS


def _norm_city(city) -> str:
    return "".join(str(city or "").split()).lower()


def city_matches(volunteer_city, donation_city) -> bool:
    """Case and whitespace insensitive; an empty city on either side does not filter."""
    a, b = _norm_city(volunteer_city), _norm_city(donation_city)
    if not a or not b:
        return True
    return a == b


def volunteer_profile(volunteer: dict) -> dict:
    profile = volunteer.get("profile") or {}
    return profile if profile.get("role", "volunteer") == "volunteer" else {}


def max_weight(volunteer: dict) -> Optional[float]:
    raw = volunteer_profile(volunteer).get("max_weight")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if value == value else None  # NaN


def exceeds_capacity(donation: dict, volunteer: dict, positive_only: bool = False) -> bool:
    if donation.get("unit") != "kg":
        return False
    limit = max_weight(volunteer)
    if limit is None or (positive_only and limit <= 0):
        return False
    return limit < float(donation.get("quantity") or 0)


def active_on(volunteer: dict, now: datetime) -> bool:
    """A weekday with no schedule entry counts as active."""
    schedule = volunteer_profile(volunteer).get("availability_schedule") or {}
    day = schedule.get(WEEKDAYS[now.weekday()])
    if not day:
        return True
    return bool(day.get("active", True))


def ensure_can_take(donation: dict, volunteer: dict, now: datetime) -> None:
    if exceeds_capacity(donation, volunteer):
        raise ValidationError(
            f"Volunteer capacity ({max_weight(volunteer):g} kg) is below donation weight "
            f"({float(donation.get('quantity') or 0):g} kg)"
        )
    if not active_on(volunteer, now):
        raise ValidationError(
            f"Volunteer is not available today (availability schedule inactive for {WEEKDAYS[now.weekday()]})"
        )


def eligible(donation: dict, donor: Optional[dict], volunteer: dict, now: datetime) -> bool:
    city = donation.get("city") or (donor or {}).get("city")
    if not city_matches(volunteer.get("city"), city):
        return False
    if is_expired(donation, now):
        return False
    if exceeds_capacity(donation, volunteer, positive_only=True):
        return False
    return True


async def available_for(store, volunteer: dict, now: datetime) -> List[dict]:
    """Accepted, unclaimed donations this volunteer could pick up right now."""
    if not active_on(volunteer, now):
        return []
    candidates = await store.donations.find(
        {"status": "accepted", "assigned_to": None, "accepted_by": {"$ne": None}},
        sort=[("created_at", -1)],
    )
    donors = {}
    out = []
    for d in candidates:
        donor_id = d.get("donor_id")
        if donor_id not in donors:
            donors[donor_id] = await store.users.get(donor_id) if donor_id else None
        if eligible(d, donors[donor_id], volunteer, now):
            out.append(d)
    return out
