"""
Double-booking detection.

Advisory only: the report tells the booking form what overlaps, the caller
decides whether to warn, ask for acknowledgment or refuse. A failed lookup
is reported as "unknown", never as "clear".
"""

import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...config import DEFAULT_JOB_DURATION_MINUTES
from .events import CalendarEvent
from .materializer import materialize_events
from .repository import JobRepository
from .time_calculator import format_clock_time, parse_calendar_date, parse_clock_time

logger = logging.getLogger(__name__)


class ConflictStatus(str, Enum):
    CLEAR = "clear"
    CONFLICTS = "conflicts"
    UNKNOWN = "unknown"


def ranges_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open [start, end) overlap: back-to-back bookings don't conflict"""
    return start_a < end_b and start_b < end_a


class ConflictCandidate(BaseModel):
    """The job being created or edited"""

    scheduled_date: date
    scheduled_time: time
    duration_minutes: int = DEFAULT_JOB_DURATION_MINUTES
    resource_ids: list[str] = Field(default_factory=list)
    exclude_job_id: Optional[str] = None  # the job under edit
    candidate_job_id: Optional[str] = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        parsed = parse_calendar_date(v)
        if parsed is None:
            raise ValueError(f"Invalid date: {v!r}")
        return parsed

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def parse_time(cls, v):
        parsed = parse_clock_time(v)
        if parsed is None:
            raise ValueError(f"Invalid time: {v!r}. Expected HH:MM or h:mm AM/PM")
        return parsed

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def default_duration(cls, v):
        if v is None:
            return DEFAULT_JOB_DURATION_MINUTES
        return v

    @field_validator("duration_minutes")
    @classmethod
    def positive_duration(cls, v):
        return v if v > 0 else DEFAULT_JOB_DURATION_MINUTES

    @field_validator("resource_ids", mode="before")
    @classmethod
    def unique_resource_ids(cls, v):
        seen: list[str] = []
        for rid in v or []:
            rid = str(rid)
            if rid not in seen:
                seen.append(rid)
        return seen

    @field_validator("exclude_job_id", "candidate_job_id", mode="before")
    @classmethod
    def coerce_job_id(cls, v):
        return str(v) if v not in (None, "") else None

    @property
    def start(self) -> datetime:
        return datetime.combine(self.scheduled_date, self.scheduled_time)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


class Conflict(BaseModel):
    resource_id: str
    candidate_job_id: Optional[str] = None
    conflicting_job_id: str
    conflicting_date: date
    conflicting_time: str  # HH:MM
    conflicting_start: datetime
    conflicting_end: datetime
    conflicting_title: Optional[str] = None


class ConflictReport(BaseModel):
    status: ConflictStatus
    conflicts: list[Conflict] = []
    unchecked_resource_ids: list[str] = []
    skipped_job_ids: list[str] = []
    error: Optional[str] = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


def find_conflicts(
    candidate: ConflictCandidate, resource_id: str, existing: list[CalendarEvent]
) -> list[Conflict]:
    """Existing events of one resource that overlap the candidate on the candidate's date"""
    conflicts = []
    for event in sorted(existing, key=lambda e: (e.start, e.id)):
        if event.resource_id != resource_id or not event.is_active:
            continue
        if candidate.exclude_job_id is not None and event.id == candidate.exclude_job_id:
            continue
        if event.start.date() != candidate.scheduled_date:
            continue
        if ranges_overlap(candidate.start, candidate.end, event.start, event.end):
            conflicts.append(
                Conflict(
                    resource_id=resource_id,
                    candidate_job_id=candidate.candidate_job_id,
                    conflicting_job_id=event.id,
                    conflicting_date=event.start.date(),
                    conflicting_time=format_clock_time(event.start.time()),
                    conflicting_start=event.start,
                    conflicting_end=event.end,
                    conflicting_title=event.title,
                )
            )
    return conflicts


class ConflictDetector:
    """Checks a candidate booking against each assigned resource's existing jobs"""

    def __init__(self, repository: JobRepository):
        self.repository = repository

    async def check(self, candidate: ConflictCandidate) -> ConflictReport:
        conflicts: list[Conflict] = []
        unchecked: list[str] = []
        skipped: list[str] = []
        errors: list[str] = []

        for resource_id in candidate.resource_ids:
            try:
                records = await self.repository.list_resource_jobs(
                    resource_id, candidate.scheduled_date
                )
            except Exception as e:
                logger.error(
                    f"❌ Conflict lookup failed for resource {resource_id} "
                    f"on {candidate.scheduled_date}: {e}"
                )
                unchecked.append(resource_id)
                errors.append(f"{resource_id}: {e}")
                continue

            materialized = materialize_events(records)
            unreadable = [
                item.record_id
                for item in materialized.skipped
                if item.record_id is None or item.record_id != candidate.exclude_job_id
            ]
            for record_id in unreadable:
                if record_id and record_id not in skipped:
                    skipped.append(record_id)

            # A job we can't place on the clock might overlap
            if unreadable:
                logger.warning(
                    f"⚠️ Resource {resource_id} has {len(unreadable)} unreadable job(s) "
                    f"on {candidate.scheduled_date}, conflict check incomplete"
                )
                unchecked.append(resource_id)
                errors.append(
                    f"{resource_id}: unreadable job(s) {', '.join(str(r) for r in unreadable)}"
                )

            conflicts.extend(find_conflicts(candidate, resource_id, materialized.events))

        if unchecked:
            status = ConflictStatus.UNKNOWN
        elif conflicts:
            status = ConflictStatus.CONFLICTS
        else:
            status = ConflictStatus.CLEAR

        if conflicts:
            logger.info(
                f"⚠️ {len(conflicts)} scheduling conflict(s) for "
                f"{candidate.scheduled_date} {format_clock_time(candidate.scheduled_time)}"
            )

        return ConflictReport(
            status=status,
            conflicts=conflicts,
            unchecked_resource_ids=unchecked,
            skipped_job_ids=skipped,
            error="; ".join(errors) or None,
        )
