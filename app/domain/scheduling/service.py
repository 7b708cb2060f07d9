"""Scheduling service - Business logic for calendar operations"""

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Optional, Union

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import DEFAULT_JOB_DURATION_MINUTES
from .availability import SlotSuggestion
from .conflicts import ConflictCandidate, ConflictReport, ConflictStatus
from .controller import CalendarSnapshot, CalendarViewController, ViewMode
from .events import Coordinates
from .layout import Agenda, MonthGrid, TimeGrid
from .materializer import MaterializedEvents, materialize_events
from .repository import JobRepository, SqlJobRepository
from .schemas import ConflictCheckRequest, SuggestionRequest
from .time_calculator import parse_calendar_date
from .travel import TravelSummary, TravelTimeProvider

logger = logging.getLogger(__name__)


def _parse_day(value: Optional[str], field: str) -> date:
    parsed = parse_calendar_date(value)
    if parsed is None:
        raise HTTPException(
            status_code=400, detail=f"Invalid {field}: {value!r}. Expected YYYY-MM-DD"
        )
    return parsed


class SchedulingService:
    """Service layer for the calendar engine"""

    def __init__(
        self,
        db: Optional[Session] = None,
        repository: Optional[JobRepository] = None,
        travel_provider: Optional[TravelTimeProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if repository is None and db is None:
            raise ValueError("SchedulingService needs a database session or a repository")
        self.db = db
        self.repo = repository or SqlJobRepository(db)
        self.travel_provider = travel_provider
        self.clock = clock

    def _controller(
        self, mode: Union[ViewMode, str], day: date, resource_ids: Optional[list[str]]
    ) -> CalendarViewController:
        try:
            controller = CalendarViewController(
                self.repo,
                travel_provider=self.travel_provider,
                clock=self.clock,
                mode=mode,
                reference_date=day,
            )
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid view mode: {mode!r}. Use month, week, day or agenda",
            )
        controller.set_resource_filter(resource_ids)
        return controller

    async def _refresh(self, controller: CalendarViewController) -> CalendarSnapshot:
        snapshot = await controller.refresh()
        if snapshot is None:
            raise HTTPException(status_code=409, detail="Calendar selection changed, retry")
        return snapshot

    async def get_events(
        self, start: str, end: str, resource_ids: Optional[list[str]] = None
    ) -> MaterializedEvents:
        """Calendar events between two dates (inclusive)"""
        start_day = _parse_day(start, "start")
        end_day = _parse_day(end, "end")
        if end_day < start_day:
            raise HTTPException(status_code=400, detail="end must not be before start")

        records = await self.repo.list_jobs(start_day, end_day, resource_ids)
        resources = await self.repo.list_resources()
        materialized = materialize_events(records, resources)
        if resource_ids is not None:
            selected = set(resource_ids)
            materialized.events = [e for e in materialized.events if e.resource_id in selected]
        logger.info(
            f"📅 {len(materialized.events)} events between {start_day} and {end_day} "
            f"({len(materialized.skipped)} skipped)"
        )
        return materialized

    async def get_view(
        self, mode: str, day: Optional[str], resource_ids: Optional[list[str]] = None
    ) -> tuple[CalendarSnapshot, Union[MonthGrid, TimeGrid, Agenda]]:
        """Fetch and lay out one calendar view"""
        reference = _parse_day(day, "date") if day else self.clock().date()
        controller = self._controller(mode, reference, resource_ids)
        snapshot = await self._refresh(controller)
        return snapshot, controller.render()

    async def get_travel(
        self, day: str, resource_ids: Optional[list[str]] = None
    ) -> list[TravelSummary]:
        """Travel summaries for each photographer working on a day"""
        reference = _parse_day(day, "date")
        controller = self._controller(ViewMode.DAY, reference, resource_ids)
        await self._refresh(controller)
        summaries = controller.travel(reference)
        logger.info(f"🚗 Travel for {reference}: {len(summaries)} photographers")
        return summaries

    async def check_conflicts(self, data: ConflictCheckRequest) -> ConflictReport:
        """Check a new or edited booking against the assigned photographers' jobs"""
        try:
            candidate = ConflictCandidate(
                scheduled_date=data.scheduledDate,
                scheduled_time=data.scheduledTime,
                duration_minutes=data.durationMinutes,
                resource_ids=data.resourceIds,
                exclude_job_id=data.excludeJobId,
                candidate_job_id=data.jobId,
            )
        except ValueError as e:
            logger.warning(f"⚠️ Invalid conflict check request: {e}")
            raise HTTPException(status_code=400, detail=str(e))

        controller = CalendarViewController(
            self.repo, travel_provider=self.travel_provider, clock=self.clock
        )
        report = await controller.check_conflicts(candidate)
        if report.status == ConflictStatus.UNKNOWN:
            logger.warning(
                f"⚠️ Conflict status unknown for {candidate.scheduled_date}: {report.error}"
            )
        return report

    async def suggest_slots(self, data: SuggestionRequest) -> list[SlotSuggestion]:
        """Free start times on a day, closest to the previous stop first"""
        reference = _parse_day(data.scheduledDate, "scheduledDate")
        duration = data.durationMinutes or DEFAULT_JOB_DURATION_MINUTES
        if duration <= 0:
            raise HTTPException(status_code=400, detail="durationMinutes must be positive")
        if data.limit is not None and data.limit <= 0:
            raise HTTPException(status_code=400, detail="limit must be positive")

        location = None
        if data.latitude is not None and data.longitude is not None:
            location = Coordinates(latitude=data.latitude, longitude=data.longitude)

        controller = self._controller(ViewMode.DAY, reference, data.resourceIds)
        await self._refresh(controller)
        return controller.suggest(reference, duration, location=location, limit=data.limit)
