"""
Availability - busy intervals and suggested start times for a new booking.

A suggestion is a slot-aligned start inside the working window whose
[start, start + duration) range is free for the photographer. Suggestions
near the photographer's previous stop (by estimated travel) rank first.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel

from ...config import SCHEDULING_SLOT_MINUTES, SUGGESTION_LIMIT
from .conflicts import ranges_overlap
from .events import CalendarEvent, Coordinates, Resource
from .layout import DEFAULT_DAY_END, DEFAULT_DAY_START
from .time_calculator import minutes_since_midnight
from .travel import HOME_BASE_ID, StraightLineTravelTimeProvider, TravelTimeProvider

logger = logging.getLogger(__name__)


class BusyInterval(BaseModel):
    start: datetime
    end: datetime
    job_id: str
    status: Optional[str] = None


class SlotSuggestion(BaseModel):
    resource_id: str
    resource_name: Optional[str] = None
    start: datetime
    end: datetime
    travel_minutes: Optional[int] = None  # from the previous stop (job or home base)
    previous_stop_id: Optional[str] = None
    reason: str


def busy_intervals(
    events: Iterable[CalendarEvent], resource_id: str, day: date
) -> list[BusyInterval]:
    """Intervals a resource is booked on `day`; cancelled jobs don't block time"""
    busy = [
        BusyInterval(start=e.start, end=e.end, job_id=e.id, status=e.status)
        for e in events
        if e.resource_id == resource_id and e.is_active and e.start.date() == day
    ]
    return sorted(busy, key=lambda b: (b.start, b.job_id))


def _previous_stop(
    day_events: Sequence[CalendarEvent], start: datetime, home_base: Optional[Coordinates]
) -> tuple[Optional[str], Optional[Coordinates]]:
    previous = [e for e in day_events if e.end <= start]
    if previous:
        last = max(previous, key=lambda e: (e.end, e.id))
        return last.id, last.location
    return (HOME_BASE_ID, home_base) if home_base is not None else (None, None)


def suggest_slots(
    events: Iterable[CalendarEvent],
    resources: Sequence[Resource],
    day: date,
    duration_minutes: int,
    location: Optional[Coordinates] = None,
    provider: Optional[TravelTimeProvider] = None,
    slot_minutes: int = SCHEDULING_SLOT_MINUTES,
    day_start: time = DEFAULT_DAY_START,
    day_end: time = DEFAULT_DAY_END,
    limit: Optional[int] = SUGGESTION_LIMIT,
) -> list[SlotSuggestion]:
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    provider = provider or StraightLineTravelTimeProvider()
    events = list(events)
    midnight = datetime.combine(day, time.min)
    window_start = midnight + timedelta(minutes=minutes_since_midnight(day_start))
    window_end = (
        midnight + timedelta(days=1)
        if day_end == time.max
        else midnight + timedelta(minutes=minutes_since_midnight(day_end))
    )
    duration = timedelta(minutes=duration_minutes)

    suggestions: list[SlotSuggestion] = []
    for resource in resources:
        busy = busy_intervals(events, resource.id, day)
        day_events = [
            e for e in events if e.resource_id == resource.id and e.is_active and e.start.date() == day
        ]

        start = window_start
        while start + duration <= window_end:
            end = start + duration
            if not any(ranges_overlap(start, end, b.start, b.end) for b in busy):
                stop_id, origin = _previous_stop(day_events, start, resource.home_base)
                travel = None
                if origin is not None and location is not None:
                    travel = provider.estimate(origin, location).minutes

                if travel is not None:
                    where = "home base" if stop_id == HOME_BASE_ID else f"job {stop_id}"
                    reason = f"{resource.name} is free (~{travel} min drive from {where})"
                else:
                    reason = f"{resource.name} is free"

                suggestions.append(
                    SlotSuggestion(
                        resource_id=resource.id,
                        resource_name=resource.name,
                        start=start,
                        end=end,
                        travel_minutes=travel,
                        previous_stop_id=stop_id,
                        reason=reason,
                    )
                )
            start += timedelta(minutes=slot_minutes)

    suggestions.sort(
        key=lambda s: (
            s.travel_minutes is None,
            s.travel_minutes if s.travel_minutes is not None else 0,
            s.start,
            s.resource_id,
        )
    )
    logger.debug(f"📅 {len(suggestions)} free slots on {day} for {len(resources)} photographers")
    return suggestions if limit is None else suggestions[:limit]
