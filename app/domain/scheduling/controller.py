"""
Calendar view controller.

Holds what the user is looking at (view mode, reference date, photographer
filter) and derives everything shown from one fetched snapshot. Every fetch
is tagged with a generation number; a response that comes back after the
selection has moved on is dropped instead of overwriting newer results.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from ...config import (
    AGENDA_HORIZON_DAYS,
    MONTH_VISIBLE_EVENTS,
    SCHEDULING_SLOT_MINUTES,
)
from .availability import SlotSuggestion, suggest_slots
from .conflicts import ConflictCandidate, ConflictDetector, ConflictReport
from .events import CalendarEvent, Coordinates, Resource
from .layout import (
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    Agenda,
    MonthGrid,
    TimeGrid,
    build_agenda,
    build_day_grid,
    build_month_grid,
    build_week_grid,
    month_grid_bounds,
)
from .materializer import SkippedRecord, materialize_events
from .repository import JobRepository
from .time_calculator import add_months, week_start
from .travel import TravelSummary, TravelTimeProvider, summarize_travel

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    AGENDA = "agenda"


class CalendarSnapshot(BaseModel):
    """Events for one selection, as fetched"""

    generation: int
    mode: ViewMode
    reference_date: date
    range_start: date
    range_end: date
    resource_filter: Optional[list[str]] = None
    events: list[CalendarEvent] = []
    skipped: list[SkippedRecord] = []
    resources: list[Resource] = []
    fetched_at: datetime


class CalendarViewController:
    def __init__(
        self,
        repository: JobRepository,
        travel_provider: Optional[TravelTimeProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
        mode: Union[ViewMode, str] = ViewMode.MONTH,
        reference_date: Optional[date] = None,
        slot_minutes: int = SCHEDULING_SLOT_MINUTES,
        day_start: time = DEFAULT_DAY_START,
        day_end: time = DEFAULT_DAY_END,
        month_visible_events: int = MONTH_VISIBLE_EVENTS,
        agenda_horizon_days: int = AGENDA_HORIZON_DAYS,
    ):
        self.repository = repository
        self.travel_provider = travel_provider
        self.clock = clock
        self.slot_minutes = slot_minutes
        self.day_start = day_start
        self.day_end = day_end
        self.month_visible_events = month_visible_events
        self.agenda_horizon_days = agenda_horizon_days
        self.conflict_detector = ConflictDetector(repository)

        self._mode = ViewMode(mode)
        self._reference_date = reference_date or clock().date()
        self._resource_filter: Optional[frozenset[str]] = None
        self._generation = 0
        self._snapshot: Optional[CalendarSnapshot] = None

    # ------------------------------------------------------------------
    # Selection state
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def reference_date(self) -> date:
        return self._reference_date

    @property
    def resource_filter(self) -> Optional[frozenset[str]]:
        return self._resource_filter

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def snapshot(self) -> Optional[CalendarSnapshot]:
        return self._snapshot

    def _selection_changed(self) -> None:
        # Invalidate anything still in flight for the old selection
        self._generation += 1

    def set_mode(self, mode: Union[ViewMode, str]) -> None:
        mode = ViewMode(mode)
        if mode != self._mode:
            self._mode = mode
            self._selection_changed()

    def set_reference_date(self, day: date) -> None:
        if day != self._reference_date:
            self._reference_date = day
            self._selection_changed()

    def set_resource_filter(self, resource_ids: Optional[Iterable[str]]) -> None:
        selected = frozenset(str(r) for r in resource_ids) if resource_ids is not None else None
        if selected != self._resource_filter:
            self._resource_filter = selected
            self._selection_changed()

    def go_next(self) -> None:
        self._step(1)

    def go_previous(self) -> None:
        self._step(-1)

    def go_today(self) -> None:
        self.set_reference_date(self.clock().date())

    def _step(self, direction: int) -> None:
        if self._mode == ViewMode.DAY:
            self.set_reference_date(self._reference_date + timedelta(days=direction))
        elif self._mode == ViewMode.WEEK:
            self.set_reference_date(self._reference_date + timedelta(weeks=direction))
        elif self._mode == ViewMode.MONTH:
            self.set_reference_date(add_months(self._reference_date, direction))
        else:
            logger.debug("Agenda view always starts today; navigation ignored")

    def visible_range(self) -> tuple[date, date]:
        """Inclusive date range the current view needs events for"""
        return self._range_for(self._mode, self._reference_date)

    def _range_for(self, mode: ViewMode, reference: date) -> tuple[date, date]:
        if mode == ViewMode.MONTH:
            return month_grid_bounds(reference)
        if mode == ViewMode.WEEK:
            start = week_start(reference)
            return start, start + timedelta(days=6)
        if mode == ViewMode.DAY:
            return reference, reference
        today = self.clock().date()
        return today, today + timedelta(days=self.agenda_horizon_days)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug(
                f"Discarding stale calendar response (generation {generation}, "
                f"latest {self._generation})"
            )
            return True
        return False

    async def refresh(self) -> Optional[CalendarSnapshot]:
        """
        Fetch and materialize events for the current selection.
        Returns None when the selection changed while the fetch was pending.
        """
        self._generation += 1
        generation = self._generation
        mode, reference, resource_filter = self._mode, self._reference_date, self._resource_filter
        range_start, range_end = self._range_for(mode, reference)
        resource_ids = sorted(resource_filter) if resource_filter is not None else None

        records = await self.repository.list_jobs(range_start, range_end, resource_ids)
        if self._is_stale(generation):
            return None
        resources = await self.repository.list_resources()
        if self._is_stale(generation):
            return None

        materialized = materialize_events(records, resources)
        events = [
            e
            for e in materialized.events
            if range_start <= e.start.date() <= range_end
            and (resource_filter is None or e.resource_id in resource_filter)
        ]

        self._snapshot = CalendarSnapshot(
            generation=generation,
            mode=mode,
            reference_date=reference,
            range_start=range_start,
            range_end=range_end,
            resource_filter=resource_ids,
            events=events,
            skipped=materialized.skipped,
            resources=resources,
            fetched_at=self.clock(),
        )
        logger.info(
            f"📅 Calendar {mode.value} {range_start}..{range_end}: {len(events)} events"
        )
        return self._snapshot

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def render(self) -> Union[MonthGrid, TimeGrid, Agenda]:
        """Layout for the latest snapshot (or an empty layout before the first fetch)"""
        if self._snapshot is not None:
            mode, reference, events = (
                self._snapshot.mode,
                self._snapshot.reference_date,
                self._snapshot.events,
            )
        else:
            mode, reference, events = self._mode, self._reference_date, []

        now = self.clock()
        if mode == ViewMode.MONTH:
            return build_month_grid(
                reference, events, max_visible=self.month_visible_events, today=now.date()
            )
        grid_options = {
            "slot_minutes": self.slot_minutes,
            "day_start": self.day_start,
            "day_end": self.day_end,
        }
        if mode == ViewMode.WEEK:
            return build_week_grid(reference, events, **grid_options)
        if mode == ViewMode.DAY:
            return build_day_grid(reference, events, **grid_options)
        return build_agenda(events, now)

    def travel(self, day: Optional[date] = None) -> list[TravelSummary]:
        """Per-photographer travel summaries for one day of the snapshot"""
        if self._snapshot is None:
            return []
        day = day or self._snapshot.reference_date
        return summarize_travel(
            self._snapshot.events,
            day,
            resources=self._snapshot.resources,
            provider=self.travel_provider,
        )

    def suggest(
        self,
        day: date,
        duration_minutes: int,
        location: Optional[Coordinates] = None,
        limit: Optional[int] = None,
    ) -> list[SlotSuggestion]:
        """Free slots on `day` for the photographers in view"""
        if self._snapshot is None:
            return []
        resources = [
            r
            for r in self._snapshot.resources
            if self._resource_filter is None or r.id in self._resource_filter
        ]
        options = {"limit": limit} if limit is not None else {}
        return suggest_slots(
            self._snapshot.events,
            resources,
            day,
            duration_minutes,
            location=location,
            provider=self.travel_provider,
            slot_minutes=self.slot_minutes,
            day_start=self.day_start,
            day_end=self.day_end,
            **options,
        )

    async def check_conflicts(self, candidate: ConflictCandidate) -> ConflictReport:
        return await self.conflict_detector.check(candidate)
