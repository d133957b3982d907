from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Unit = Literal["servings", "kg", "packets", "pieces", "liters"]
DietaryTag = Literal["Vegetarian", "Vegan", "Halal", "Gluten-Free"]
Allergen = Literal["Gluten", "Dairy", "Eggs", "Nuts", "Peanuts", "Soy", "Fish", "Shellfish", "Sesame"]
StorageCondition = Literal[
    "Refrigerated (0-4°C)",
    "Room Temperature (20-25°C)",
    "Frozen (-18°C or below)",
    "Hot Hold (above 60°C)",
]


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class LatLng(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class Hygiene(BaseModel):
    safe_handling: bool
    temperature_control: bool
    proper_packaging: bool
    no_contamination: bool

    @field_validator("safe_handling", "temperature_control", "proper_packaging", "no_contamination")
    @classmethod
    def _confirmed(cls, v: bool, info):
        if v is not True:
            raise ValueError(f"{info.field_name.replace('_', ' ')} must be confirmed")
        return v


class DonationCreate(BaseModel):
    # food
    food_type: str = Field(min_length=1)
    food_name: str = Field(min_length=1)
    description: Optional[str] = None
    quantity: float = Field(ge=1)
    unit: Unit = "servings"
    estimated_servings: int = Field(ge=1)
    dietary_tags: List[DietaryTag] = []
    food_photo: Optional[str] = None

    # safety window
    preparation_date: str
    preparation_time: str
    expiry_date: str
    expiry_time: str
    storage_condition: StorageCondition
    allergens: List[Allergen] = []

    hygiene: Hygiene

    # pickup
    pickup_address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    pickup_deadline: str
    pickup_instructions: Optional[str] = None
    location: LatLng = LatLng()

    @field_validator("food_type", "food_name", "pickup_address", "city")
    @classmethod
    def _strip(cls, v: str):
        return _not_blank(v)


class DonationUpdate(BaseModel):
    """Donor edits before the donation is committed. Only provided fields are written."""
    food_type: Optional[str] = None
    food_name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = Field(default=None, ge=1)
    unit: Optional[Unit] = None
    estimated_servings: Optional[int] = Field(default=None, ge=1)
    dietary_tags: Optional[List[DietaryTag]] = None
    food_photo: Optional[str] = None
    preparation_date: Optional[str] = None
    preparation_time: Optional[str] = None
    expiry_date: Optional[str] = None
    expiry_time: Optional[str] = None
    storage_condition: Optional[StorageCondition] = None
    allergens: Optional[List[Allergen]] = None
    hygiene: Optional[Hygiene] = None
    pickup_address: Optional[str] = None
    city: Optional[str] = None
    pickup_deadline: Optional[str] = None
    pickup_instructions: Optional[str] = None
    location: Optional[LatLng] = None

    @field_validator("food_type", "food_name", "pickup_address", "city")
    @classmethod
    def _strip(cls, v: Optional[str]):
        if v is None:
            return v
        return _not_blank(v)


def expiry_of(doc: dict) -> Optional[datetime]:
    date, time = doc.get("expiry_date"), doc.get("expiry_time")
    if not date or not time:
        return None
    try:
        at = datetime.fromisoformat(f"{date}T{time}")
    except (TypeError, ValueError):
        return None
    # expiry strings carry no zone; they are read as UTC
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at


def is_expired(doc: dict, now: datetime) -> bool:
    at = expiry_of(doc)
    return at is not None and now > at


def remaining_time(doc: dict, now: datetime) -> Optional[str]:
    at = expiry_of(doc)
    if at is None:
        return None
    secs = int((at - now).total_seconds())
    if secs <= 0:
        return "Expired"
    return f"{secs // 3600}h {(secs % 3600) // 60}m"
