from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

from foodlink.models.donation import LatLng

Role = Literal["donor", "ngo", "volunteer", "admin"]
Weekday = Literal["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
WEEKDAYS = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


class Slot(BaseModel):
    start: str
    end: str


class DaySchedule(BaseModel):
    active: bool = True
    slots: List[Slot] = []


def default_schedule() -> Dict[str, DaySchedule]:
    return {day: DaySchedule(active=day not in ("sat", "sun")) for day in WEEKDAYS}


class DonorProfile(BaseModel):
    role: Literal["donor"] = "donor"
    organization_name: Optional[str] = None
    organization_type: Optional[str] = None


class NgoProfile(BaseModel):
    role: Literal["ngo"] = "ngo"
    organization_name: Optional[str] = None
    registration_number: Optional[str] = None
    daily_capacity: Optional[int] = Field(default=None, ge=0)


class VolunteerProfile(BaseModel):
    role: Literal["volunteer"] = "volunteer"
    vehicle_type: Literal["bicycle", "two_wheeler", "car", "van"] = "two_wheeler"
    max_weight: Optional[float] = None
    service_radius: float = 5
    preferred_areas: List[str] = []
    availability_schedule: Dict[Weekday, DaySchedule] = Field(default_factory=default_schedule)


class AdminProfile(BaseModel):
    role: Literal["admin"] = "admin"


Profile = Annotated[
    Union[DonorProfile, NgoProfile, VolunteerProfile, AdminProfile],
    Field(discriminator="role"),
]


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str
    phone: str
    role: Role
    address: str
    city: str
    location: LatLng = LatLng()
    is_available: bool = False
    verification_status: Literal["pending", "approved", "rejected"] = "pending"
    profile: Profile

    def to_doc(self) -> dict:
        doc = self.model_dump()
        if doc["profile"]["role"] != self.role:
            raise ValueError("profile role does not match user role")
        return doc


class VolunteerProfileUpdate(BaseModel):
    is_available: Optional[bool] = None
    vehicle_type: Optional[Literal["bicycle", "two_wheeler", "car", "van"]] = None
    max_weight: Optional[float] = None
    service_radius: Optional[float] = None
    preferred_areas: Optional[List[str]] = None
    availability_schedule: Optional[Dict[Weekday, DaySchedule]] = None
