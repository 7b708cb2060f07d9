"""Canonical scheduling types shared by every engine component"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

UNASSIGNED_COLOR = "#9ca3af"

# Statuses that no longer occupy a photographer's time
INACTIVE_STATUSES = frozenset({"cancelled", "canceled"})


class Coordinates(BaseModel):
    """Latitude/longitude pair in decimal degrees"""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class Resource(BaseModel):
    """A crew member (photographer) jobs can be assigned to"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: Optional[str] = None
    home_base: Optional[Coordinates] = None


class CalendarEvent(BaseModel):
    """A job materialized onto one resource's calendar"""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    start: datetime
    end: datetime
    resource_id: Optional[str] = None
    color: str = UNASSIGNED_COLOR
    status: Optional[str] = None
    location: Optional[Coordinates] = None
    drive_time_minutes: Optional[int] = None
    is_primary: bool = False

    @model_validator(mode="after")
    def check_range(self):
        if self.start >= self.end:
            raise ValueError(f"Event {self.id} must start before it ends")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration / timedelta(minutes=1)

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() not in INACTIVE_STATUSES

    @property
    def sort_key(self) -> tuple:
        return (self.start, self.id, self.resource_id or "")
