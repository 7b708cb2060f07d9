"""
Calendar layout for the month, week, day and agenda views.

All functions are pure: "today" and "now" are passed in by the caller, so
laying out the same events with the same parameters always gives the same
grid.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel

from ...config import (
    MONTH_VISIBLE_EVENTS,
    SCHEDULING_DAY_END_HOUR,
    SCHEDULING_DAY_START_HOUR,
    SCHEDULING_SLOT_MINUTES,
)
from .events import CalendarEvent
from .time_calculator import floor_to_slot, minutes_since_midnight, month_bounds, slot_span, week_start

DEFAULT_DAY_START = time(SCHEDULING_DAY_START_HOUR, 0)
DEFAULT_DAY_END = time(SCHEDULING_DAY_END_HOUR, 0) if SCHEDULING_DAY_END_HOUR < 24 else time.max


# ============================================================================
# MONTH VIEW
# ============================================================================


class DayCell(BaseModel):
    day: date
    in_month: bool
    is_today: bool = False
    events: list[CalendarEvent] = []
    hidden_count: int = 0

    @property
    def overflow_label(self) -> Optional[str]:
        return f"+{self.hidden_count} more" if self.hidden_count > 0 else None

    @property
    def total_events(self) -> int:
        return len(self.events) + self.hidden_count


class MonthGrid(BaseModel):
    year: int
    month: int
    first_day: date
    last_day: date
    weeks: list[list[DayCell]]

    @property
    def cells(self) -> list[DayCell]:
        return [cell for week in self.weeks for cell in week]


def group_events_by_day(events: Iterable[CalendarEvent]) -> dict[date, list[CalendarEvent]]:
    """Events keyed by start date, each list sorted by start time"""
    grouped: dict[date, list[CalendarEvent]] = defaultdict(list)
    for event in events:
        grouped[event.start.date()].append(event)
    for day_events in grouped.values():
        day_events.sort(key=lambda e: e.sort_key)
    return grouped


def month_grid_bounds(reference: date) -> tuple[date, date]:
    """
    Monday on/before the 1st through the Sunday on/after the last day.
    Always 5 or 6 whole weeks: a four-week span (28-day February starting
    on a Monday) gets one trailing week.
    """
    first, last = month_bounds(reference)
    grid_start = week_start(first)
    grid_end = last + timedelta(days=6 - last.weekday())
    if (grid_end - grid_start).days + 1 < 35:
        grid_end += timedelta(days=7)
    return grid_start, grid_end


def build_month_grid(
    reference: date,
    events: Iterable[CalendarEvent],
    max_visible: int = MONTH_VISIBLE_EVENTS,
    today: Optional[date] = None,
) -> MonthGrid:
    if max_visible < 0:
        raise ValueError("max_visible must not be negative")

    grid_start, grid_end = month_grid_bounds(reference)
    by_day = group_events_by_day(events)

    weeks: list[list[DayCell]] = []
    day = grid_start
    while day <= grid_end:
        week = []
        for _ in range(7):
            day_events = by_day.get(day, [])
            week.append(
                DayCell(
                    day=day,
                    in_month=day.month == reference.month,
                    is_today=today is not None and day == today,
                    events=day_events[:max_visible],
                    hidden_count=max(0, len(day_events) - max_visible),
                )
            )
            day += timedelta(days=1)
        weeks.append(week)

    return MonthGrid(
        year=reference.year,
        month=reference.month,
        first_day=grid_start,
        last_day=grid_end,
        weeks=weeks,
    )


# ============================================================================
# WEEK / DAY VIEW
# ============================================================================


class SlotPlacement(BaseModel):
    """An event drawn in its anchor slot"""

    event: CalendarEvent
    slot_index: int
    span: int  # ceil(duration / slot)
    visible_span: int  # span clipped at the end of the day window
    truncated: bool = False
    lane: int = 0
    lane_count: int = 1


class TimeSlot(BaseModel):
    index: int
    start: datetime
    end: datetime
    placements: list[SlotPlacement] = []


class DayColumn(BaseModel):
    day: date
    slots: list[TimeSlot]
    outside_window: list[CalendarEvent] = []

    @property
    def placements(self) -> list[SlotPlacement]:
        return [p for slot in self.slots for p in slot.placements]


class TimeGrid(BaseModel):
    slot_minutes: int
    day_start: time
    day_end: time
    columns: list[DayColumn]


def _window_minutes(day_start: time, day_end: time) -> tuple[int, int]:
    start = minutes_since_midnight(day_start)
    end = 24 * 60 if day_end == time.max else minutes_since_midnight(day_end)
    if end <= start:
        raise ValueError("day_end must be after day_start")
    return start, end


def _assign_lanes(placements: list[SlotPlacement]) -> None:
    """
    Side-by-side lanes for blocks whose drawn slot ranges overlap. Greedy:
    each block takes the lowest lane free at its anchor slot; lane_count is
    shared by every block in an overlapping cluster.
    """
    ordered = sorted(placements, key=lambda p: (p.slot_index, p.event.sort_key))
    cluster: list[SlotPlacement] = []
    lane_ends: list[int] = []
    cluster_end = -1

    def close_cluster():
        for member in cluster:
            member.lane_count = len(lane_ends)

    for placement in ordered:
        begin = placement.slot_index
        finish = placement.slot_index + placement.visible_span
        if cluster and begin >= cluster_end:
            close_cluster()
            cluster, lane_ends, cluster_end = [], [], -1

        for lane, lane_end in enumerate(lane_ends):
            if lane_end <= begin:
                placement.lane = lane
                lane_ends[lane] = finish
                break
        else:
            placement.lane = len(lane_ends)
            lane_ends.append(finish)

        cluster.append(placement)
        cluster_end = max(cluster_end, finish)

    if cluster:
        close_cluster()


def build_day_column(
    day: date,
    events: Iterable[CalendarEvent],
    slot_minutes: int = SCHEDULING_SLOT_MINUTES,
    day_start: time = DEFAULT_DAY_START,
    day_end: time = DEFAULT_DAY_END,
) -> DayColumn:
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    window_start, window_end = _window_minutes(day_start, day_end)
    slot_count = slot_span(window_end - window_start, slot_minutes)
    midnight = datetime.combine(day, time.min)
    first_slot = midnight + timedelta(minutes=window_start)

    slots = [
        TimeSlot(
            index=i,
            start=first_slot + timedelta(minutes=i * slot_minutes),
            end=first_slot + timedelta(minutes=(i + 1) * slot_minutes),
        )
        for i in range(slot_count)
    ]

    outside: list[CalendarEvent] = []
    placements: list[SlotPlacement] = []
    for event in sorted(events, key=lambda e: e.sort_key):
        if event.start.date() != day:
            continue
        anchor = floor_to_slot(event.start, slot_minutes, origin=first_slot)
        offset = (anchor - first_slot) // timedelta(minutes=1)
        if offset < 0 or offset >= slot_count * slot_minutes:
            outside.append(event)
            continue

        index = offset // slot_minutes
        span = slot_span(event.duration_minutes, slot_minutes)
        visible = min(span, slot_count - index)
        placement = SlotPlacement(
            event=event,
            slot_index=index,
            span=span,
            visible_span=visible,
            truncated=visible < span,
        )
        placements.append(placement)
        slots[index].placements.append(placement)

    _assign_lanes(placements)
    return DayColumn(day=day, slots=slots, outside_window=outside)


def build_time_grid(
    days: Sequence[date],
    events: Iterable[CalendarEvent],
    slot_minutes: int = SCHEDULING_SLOT_MINUTES,
    day_start: time = DEFAULT_DAY_START,
    day_end: time = DEFAULT_DAY_END,
) -> TimeGrid:
    by_day = group_events_by_day(events)
    columns = [
        build_day_column(day, by_day.get(day, []), slot_minutes, day_start, day_end)
        for day in days
    ]
    return TimeGrid(slot_minutes=slot_minutes, day_start=day_start, day_end=day_end, columns=columns)


def week_days(reference: date) -> list[date]:
    start = week_start(reference)
    return [start + timedelta(days=i) for i in range(7)]


def build_week_grid(reference: date, events: Iterable[CalendarEvent], **options) -> TimeGrid:
    return build_time_grid(week_days(reference), events, **options)


def build_day_grid(reference: date, events: Iterable[CalendarEvent], **options) -> TimeGrid:
    return build_time_grid([reference], events, **options)


# ============================================================================
# AGENDA VIEW
# ============================================================================

AGENDA_TODAY = "today"
AGENDA_UPCOMING = "upcoming"


class AgendaGroup(BaseModel):
    kind: str  # today | upcoming
    day: date
    events: list[CalendarEvent] = []
    now_marker: Optional[float] = None  # 0..1 position of "now" between first start and last end


class Agenda(BaseModel):
    today: AgendaGroup
    upcoming: list[AgendaGroup] = []


def current_time_marker(events: Sequence[CalendarEvent], now: datetime) -> Optional[float]:
    """Relative position of `now` between the first event start and the last event end"""
    if not events:
        return None
    first_start = min(e.start for e in events)
    last_end = max(e.end for e in events)
    position = (now - first_start) / (last_end - first_start)
    return min(1.0, max(0.0, position))


def build_agenda(events: Iterable[CalendarEvent], now: datetime) -> Agenda:
    today = now.date()
    by_day = group_events_by_day(events)

    today_events = by_day.get(today, [])
    today_group = AgendaGroup(
        kind=AGENDA_TODAY,
        day=today,
        events=today_events,
        now_marker=current_time_marker(today_events, now),
    )
    upcoming = [
        AgendaGroup(kind=AGENDA_UPCOMING, day=day, events=by_day[day])
        for day in sorted(by_day)
        if day > today
    ]
    return Agenda(today=today_group, upcoming=upcoming)
