from typing import Optional

from pydantic import BaseModel, Field


class RequestIn(BaseModel):
    donation_id: str
    notes: Optional[str] = None


class AssignVolunteerIn(BaseModel):
    volunteer_id: str


class ReasonIn(BaseModel):
    reason: Optional[str] = None


class AssignmentCreateIn(BaseModel):
    donation_id: str
    volunteer_id: str


class ClaimIn(BaseModel):
    donation_id: str


class LocationIn(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class CompleteIn(BaseModel):
    notes: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
