"""
Event materialization - job records to calendar events.

Each job produces one event per assigned photographer (so it shows on every
assignee's calendar), or a single unassigned event. Records whose date or
time can't be read are skipped and reported, never zero-filled.
"""

import hashlib
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Optional, Union

from pydantic import BaseModel

from ...config import DEFAULT_JOB_DURATION_MINUTES
from .events import UNASSIGNED_COLOR, CalendarEvent, Coordinates, Resource
from .records import JobRecord, JobRecordError, normalize_job_record
from .time_calculator import parse_calendar_date, parse_clock_time

logger = logging.getLogger(__name__)

RESOURCE_PALETTE = (
    "#4f46e5",  # Indigo
    "#10b981",  # Emerald
    "#f59e0b",  # Amber
    "#ef4444",  # Red
    "#8b5cf6",  # Violet
    "#06b6d4",  # Cyan
    "#ec4899",  # Pink
    "#84cc16",  # Lime
    "#6366f1",  # Indigo
    "#14b8a6",  # Teal
)


class SkippedRecord(BaseModel):
    """A record that could not be placed on the calendar"""

    record_id: Optional[str] = None
    reason: str


class MaterializedEvents(BaseModel):
    events: list[CalendarEvent] = []
    skipped: list[SkippedRecord] = []


def resolve_start(record: JobRecord) -> tuple[Optional[datetime], Optional[str]]:
    """Combine scheduled date + time. Returns (start, None) or (None, reason)."""
    day = parse_calendar_date(record.scheduled_date)
    if day is None:
        return None, f"unparseable scheduled date: {record.scheduled_date!r}"
    clock = parse_clock_time(record.scheduled_time)
    if clock is None:
        return None, f"unparseable scheduled time: {record.scheduled_time!r}"
    return datetime.combine(day, clock), None


def effective_duration(record: JobRecord) -> int:
    if record.duration_minutes is None or record.duration_minutes <= 0:
        return DEFAULT_JOB_DURATION_MINUTES
    return record.duration_minutes


def build_color_map(
    records: Sequence[JobRecord], resources: Optional[Iterable[Resource]] = None
) -> dict[str, str]:
    """
    Resource id -> color. Known resources keep their own color tag, the rest
    get a palette color picked from a digest of their id, so a photographer
    keeps the same color whatever range or filter is on screen.
    """
    directory = {r.id: r.color for r in resources or () if r.color}
    resource_ids = sorted({rid for record in records for rid in record.resource_ids})
    return {rid: directory.get(rid) or palette_color(rid) for rid in resource_ids}


def palette_color(resource_id: str) -> str:
    digest = hashlib.sha256(resource_id.encode()).hexdigest()
    return RESOURCE_PALETTE[int(digest[:8], 16) % len(RESOURCE_PALETTE)]


def materialize_events(
    raw_records: Iterable[Union[Mapping, JobRecord]],
    resources: Optional[Iterable[Resource]] = None,
) -> MaterializedEvents:
    """Turn raw job records into sorted calendar events"""
    records: list[JobRecord] = []
    skipped: list[SkippedRecord] = []

    for raw in raw_records:
        try:
            records.append(normalize_job_record(raw))
        except JobRecordError as e:
            logger.warning(f"⚠️ Skipping job record {e.record_id or '<no id>'}: {e}")
            skipped.append(SkippedRecord(record_id=e.record_id, reason=str(e)))

    colors = build_color_map(records, resources)
    events: list[CalendarEvent] = []

    for record in records:
        start, reason = resolve_start(record)
        if start is None:
            logger.warning(f"⚠️ Skipping job {record.id}: {reason}")
            skipped.append(SkippedRecord(record_id=record.id, reason=reason))
            continue

        end = start + timedelta(minutes=effective_duration(record))
        location = (
            Coordinates(latitude=record.latitude, longitude=record.longitude)
            if record.has_location
            else None
        )
        title = record.title or f"Job {record.id}"

        if not record.assignments:
            events.append(
                CalendarEvent(
                    id=record.id,
                    title=title,
                    start=start,
                    end=end,
                    status=record.status,
                    location=location,
                    drive_time_minutes=record.drive_time_minutes,
                )
            )
            continue

        seen = set()
        for assignment in record.assignments:
            if assignment.resource_id in seen:
                continue
            seen.add(assignment.resource_id)
            events.append(
                CalendarEvent(
                    id=record.id,
                    title=title,
                    start=start,
                    end=end,
                    resource_id=assignment.resource_id,
                    color=colors.get(assignment.resource_id, UNASSIGNED_COLOR),
                    status=record.status,
                    location=location,
                    drive_time_minutes=record.drive_time_minutes,
                    is_primary=assignment.is_primary,
                )
            )

    events.sort(key=lambda e: e.sort_key)
    if skipped:
        logger.info(f"📅 Materialized {len(events)} events, skipped {len(skipped)} records")
    return MaterializedEvents(events=events, skipped=skipped)
