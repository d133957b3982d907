from foodlink.core.errors import ConflictError

DONATION_STATES = [
    "pending", "accepted", "assigned", "in_transit",
    "picked_up", "delivered", "cancelled", "expired",
]
REQUEST_STATES = ["pending", "accepted", "assigned", "picked_up", "delivered", "cancelled"]
ASSIGNMENT_STATES = ["pending", "accepted", "in_transit", "completed", "cancelled"]

ACTIVE_ASSIGNMENT = ["pending", "accepted", "in_transit"]
LIVE_REQUEST = ["accepted", "assigned", "picked_up"]
TERMINAL_REQUEST = ["delivered", "cancelled"]
TERMINAL_DONATION = ["delivered", "cancelled"]

# donation already committed downstream: donor may no longer edit or delete it
LOCKED_DONATION = ["accepted", "assigned", "in_transit", "picked_up", "delivered"]

TRANSITIONS = {
    "donation": {
        ("pending",    "accepted"),
        ("pending",    "assigned"),
        ("accepted",   "assigned"),
        ("accepted",   "picked_up"),
        ("assigned",   "picked_up"),
        ("in_transit", "picked_up"),
        ("assigned",   "in_transit"),
        ("accepted",   "in_transit"),
        ("accepted",   "delivered"),
        ("assigned",   "delivered"),
        ("in_transit", "delivered"),
        ("picked_up",  "delivered"),
        # assignment cancelled
        ("assigned",   "accepted"),
        ("assigned",   "pending"),
        ("in_transit", "accepted"),
        ("in_transit", "pending"),
        # request cancelled before a volunteer was attached
        ("accepted",   "pending"),
    } | {(s, "cancelled") for s in DONATION_STATES if s not in TERMINAL_DONATION},
    "request": {
        ("pending",   "accepted"),
        ("accepted",  "assigned"),
        ("accepted",  "picked_up"),
        ("assigned",  "picked_up"),
        ("accepted",  "delivered"),
        ("assigned",  "delivered"),
        ("picked_up", "delivered"),
        ("assigned",  "accepted"),
        ("picked_up", "accepted"),
    } | {(s, "cancelled") for s in REQUEST_STATES if s not in TERMINAL_REQUEST},
    "assignment": {
        ("pending",    "accepted"),
        ("accepted",   "in_transit"),
        ("accepted",   "completed"),
        ("in_transit", "completed"),
        ("pending",    "cancelled"),
        ("accepted",   "cancelled"),
        ("in_transit", "cancelled"),
    },
}


def can_transition(kind: str, src: str, dst: str) -> bool:
    return (src, dst) in TRANSITIONS.get(kind, set())


def ensure_transition(kind: str, src: str, dst: str, message: str | None = None) -> None:
    if not can_transition(kind, src, dst):
        raise ConflictError(message or f"{kind.capitalize()} cannot move from {src} to {dst}")


def sources(kind: str, dst: str) -> list:
    """Statuses from which ``dst`` is a legal move."""
    return sorted(src for src, to in TRANSITIONS.get(kind, set()) if to == dst)
