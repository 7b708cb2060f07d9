"""Scheduling domain schemas - Pydantic models for the calendar API"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class ConflictCheckRequest(BaseModel):
    """Schema for checking a booking against existing jobs"""

    scheduledDate: str
    scheduledTime: str
    durationMinutes: Optional[int] = None
    resourceIds: list[str] = []
    excludeJobId: Optional[str] = None
    jobId: Optional[str] = None

    @field_validator("excludeJobId", "jobId", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v


class SuggestionRequest(BaseModel):
    """Schema for asking for free slots on a day"""

    scheduledDate: str
    durationMinutes: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    resourceIds: Optional[list[str]] = None
    limit: Optional[int] = None


class CoordinatesResponse(BaseModel):
    latitude: float
    longitude: float


class CalendarEventResponse(BaseModel):
    """Schema for one job on one photographer's calendar"""

    id: str
    title: str
    start: datetime
    end: datetime
    durationMinutes: int
    resourceId: Optional[str] = None
    color: str
    status: Optional[str] = None
    location: Optional[CoordinatesResponse] = None
    driveTimeMinutes: Optional[int] = None
    isPrimary: bool = False


class SkippedRecordResponse(BaseModel):
    recordId: Optional[str] = None
    reason: str


class EventsResponse(BaseModel):
    events: list[CalendarEventResponse]
    skipped: list[SkippedRecordResponse] = []


class DayCellResponse(BaseModel):
    day: date
    inMonth: bool
    isToday: bool
    events: list[CalendarEventResponse]
    hiddenCount: int
    overflowLabel: Optional[str] = None


class MonthGridResponse(BaseModel):
    year: int
    month: int
    firstDay: date
    lastDay: date
    weeks: list[list[DayCellResponse]]


class SlotPlacementResponse(BaseModel):
    event: CalendarEventResponse
    slotIndex: int
    span: int
    visibleSpan: int
    truncated: bool
    lane: int
    laneCount: int


class TimeSlotResponse(BaseModel):
    index: int
    start: datetime
    end: datetime
    placements: list[SlotPlacementResponse]


class DayColumnResponse(BaseModel):
    day: date
    slots: list[TimeSlotResponse]
    outsideWindow: list[CalendarEventResponse] = []


class TimeGridResponse(BaseModel):
    slotMinutes: int
    dayStart: str  # HH:MM
    dayEnd: str  # HH:MM, "24:00" for end of day
    columns: list[DayColumnResponse]


class AgendaGroupResponse(BaseModel):
    kind: str
    day: date
    events: list[CalendarEventResponse]
    nowMarker: Optional[float] = None


class AgendaResponse(BaseModel):
    today: AgendaGroupResponse
    upcoming: list[AgendaGroupResponse]


class CalendarViewResponse(BaseModel):
    """Schema for a rendered calendar view; exactly one layout is set"""

    mode: str
    rangeStart: date
    rangeEnd: date
    monthGrid: Optional[MonthGridResponse] = None
    timeGrid: Optional[TimeGridResponse] = None
    agenda: Optional[AgendaResponse] = None
    skipped: list[SkippedRecordResponse] = []


class TravelLegResponse(BaseModel):
    fromId: str
    toId: str
    minutes: Optional[int] = None
    distanceKm: Optional[float] = None
    source: str


class TravelSummaryResponse(BaseModel):
    resourceId: Optional[str] = None
    day: Optional[date] = None
    totalMinutes: int
    complete: bool
    legs: list[TravelLegResponse]


class ConflictResponse(BaseModel):
    resourceId: str
    candidateJobId: Optional[str] = None
    conflictingJobId: str
    conflictingDate: date
    conflictingTime: str
    conflictingStart: datetime
    conflictingEnd: datetime
    conflictingTitle: Optional[str] = None


class ConflictReportResponse(BaseModel):
    status: str  # clear | conflicts | unknown
    hasConflicts: bool
    conflicts: list[ConflictResponse]
    uncheckedResourceIds: list[str] = []
    skippedJobIds: list[str] = []
    error: Optional[str] = None


class SlotSuggestionResponse(BaseModel):
    resourceId: str
    resourceName: Optional[str] = None
    start: datetime
    end: datetime
    travelMinutes: Optional[int] = None
    previousStopId: Optional[str] = None
    reason: str
