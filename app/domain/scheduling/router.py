"""Scheduling router - FastAPI endpoints for the photographer calendar"""

import logging
from datetime import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .availability import SlotSuggestion
from .conflicts import ConflictReport
from .events import CalendarEvent
from .layout import Agenda, AgendaGroup, DayCell, MonthGrid, TimeGrid
from .materializer import SkippedRecord
from .schemas import (
    AgendaGroupResponse,
    AgendaResponse,
    CalendarEventResponse,
    CalendarViewResponse,
    ConflictCheckRequest,
    ConflictReportResponse,
    ConflictResponse,
    CoordinatesResponse,
    DayCellResponse,
    DayColumnResponse,
    EventsResponse,
    MonthGridResponse,
    SkippedRecordResponse,
    SlotPlacementResponse,
    SlotSuggestionResponse,
    SuggestionRequest,
    TimeGridResponse,
    TimeSlotResponse,
    TravelLegResponse,
    TravelSummaryResponse,
)
from .service import SchedulingService
from .time_calculator import format_clock_time
from .travel import TravelSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


def parse_resource_ids(resource_ids: Optional[str]) -> Optional[list[str]]:
    """Comma separated photographer ids; empty means no filter"""
    if not resource_ids:
        return None
    ids = [rid.strip() for rid in resource_ids.split(",") if rid.strip()]
    return ids or None


# ============================================================================
# RESPONSE BUILDERS
# ============================================================================


def event_response(event: CalendarEvent) -> CalendarEventResponse:
    return CalendarEventResponse(
        id=event.id,
        title=event.title,
        start=event.start,
        end=event.end,
        durationMinutes=int(event.duration_minutes),
        resourceId=event.resource_id,
        color=event.color,
        status=event.status,
        location=(
            CoordinatesResponse(
                latitude=event.location.latitude, longitude=event.location.longitude
            )
            if event.location
            else None
        ),
        driveTimeMinutes=event.drive_time_minutes,
        isPrimary=event.is_primary,
    )


def skipped_response(skipped: list[SkippedRecord]) -> list[SkippedRecordResponse]:
    return [SkippedRecordResponse(recordId=s.record_id, reason=s.reason) for s in skipped]


def _day_cell_response(cell: DayCell) -> DayCellResponse:
    return DayCellResponse(
        day=cell.day,
        inMonth=cell.in_month,
        isToday=cell.is_today,
        events=[event_response(e) for e in cell.events],
        hiddenCount=cell.hidden_count,
        overflowLabel=cell.overflow_label,
    )


def month_grid_response(grid: MonthGrid) -> MonthGridResponse:
    return MonthGridResponse(
        year=grid.year,
        month=grid.month,
        firstDay=grid.first_day,
        lastDay=grid.last_day,
        weeks=[[_day_cell_response(cell) for cell in week] for week in grid.weeks],
    )


def time_grid_response(grid: TimeGrid) -> TimeGridResponse:
    return TimeGridResponse(
        slotMinutes=grid.slot_minutes,
        dayStart=format_clock_time(grid.day_start),
        dayEnd="24:00" if grid.day_end == time.max else format_clock_time(grid.day_end),
        columns=[
            DayColumnResponse(
                day=column.day,
                slots=[
                    TimeSlotResponse(
                        index=slot.index,
                        start=slot.start,
                        end=slot.end,
                        placements=[
                            SlotPlacementResponse(
                                event=event_response(p.event),
                                slotIndex=p.slot_index,
                                span=p.span,
                                visibleSpan=p.visible_span,
                                truncated=p.truncated,
                                lane=p.lane,
                                laneCount=p.lane_count,
                            )
                            for p in slot.placements
                        ],
                    )
                    for slot in column.slots
                ],
                outsideWindow=[event_response(e) for e in column.outside_window],
            )
            for column in grid.columns
        ],
    )


def _agenda_group_response(group: AgendaGroup) -> AgendaGroupResponse:
    return AgendaGroupResponse(
        kind=group.kind,
        day=group.day,
        events=[event_response(e) for e in group.events],
        nowMarker=group.now_marker,
    )


def agenda_response(agenda: Agenda) -> AgendaResponse:
    return AgendaResponse(
        today=_agenda_group_response(agenda.today),
        upcoming=[_agenda_group_response(g) for g in agenda.upcoming],
    )


def travel_response(summary: TravelSummary) -> TravelSummaryResponse:
    return TravelSummaryResponse(
        resourceId=summary.resource_id,
        day=summary.day,
        totalMinutes=summary.total_minutes,
        complete=summary.complete,
        legs=[
            TravelLegResponse(
                fromId=leg.from_id,
                toId=leg.to_id,
                minutes=leg.minutes,
                distanceKm=leg.distance_km,
                source=leg.source,
            )
            for leg in summary.legs
        ],
    )


def conflict_report_response(report: ConflictReport) -> ConflictReportResponse:
    return ConflictReportResponse(
        status=report.status.value,
        hasConflicts=report.has_conflicts,
        conflicts=[
            ConflictResponse(
                resourceId=c.resource_id,
                candidateJobId=c.candidate_job_id,
                conflictingJobId=c.conflicting_job_id,
                conflictingDate=c.conflicting_date,
                conflictingTime=c.conflicting_time,
                conflictingStart=c.conflicting_start,
                conflictingEnd=c.conflicting_end,
                conflictingTitle=c.conflicting_title,
            )
            for c in report.conflicts
        ],
        uncheckedResourceIds=report.unchecked_resource_ids,
        skippedJobIds=report.skipped_job_ids,
        error=report.error,
    )


def suggestion_response(suggestion: SlotSuggestion) -> SlotSuggestionResponse:
    return SlotSuggestionResponse(
        resourceId=suggestion.resource_id,
        resourceName=suggestion.resource_name,
        start=suggestion.start,
        end=suggestion.end,
        travelMinutes=suggestion.travel_minutes,
        previousStopId=suggestion.previous_stop_id,
        reason=suggestion.reason,
    )


# ============================================================================
# CALENDAR ENDPOINTS
# ============================================================================


@router.get("/events", response_model=EventsResponse)
async def get_events(
    start: str = Query(..., description="First day, YYYY-MM-DD"),
    end: str = Query(..., description="Last day (inclusive), YYYY-MM-DD"),
    resourceIds: Optional[str] = Query(None, description="Comma separated photographer ids"),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Calendar events for a date range, one per job and assigned photographer"""
    materialized = await service.get_events(start, end, parse_resource_ids(resourceIds))
    return EventsResponse(
        events=[event_response(e) for e in materialized.events],
        skipped=skipped_response(materialized.skipped),
    )


@router.get("/view", response_model=CalendarViewResponse)
async def get_view(
    mode: str = Query("month", description="month, week, day or agenda"),
    date: Optional[str] = Query(None, description="Reference day, defaults to today"),
    resourceIds: Optional[str] = Query(None),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Laid out month grid, week/day time grid or agenda"""
    snapshot, layout = await service.get_view(mode, date, parse_resource_ids(resourceIds))
    response = CalendarViewResponse(
        mode=snapshot.mode.value,
        rangeStart=snapshot.range_start,
        rangeEnd=snapshot.range_end,
        skipped=skipped_response(snapshot.skipped),
    )
    if isinstance(layout, MonthGrid):
        response.monthGrid = month_grid_response(layout)
    elif isinstance(layout, TimeGrid):
        response.timeGrid = time_grid_response(layout)
    else:
        response.agenda = agenda_response(layout)
    return response


@router.get("/travel", response_model=list[TravelSummaryResponse])
async def get_travel(
    date: str = Query(..., description="Day, YYYY-MM-DD"),
    resourceIds: Optional[str] = Query(None),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Estimated driving between each photographer's jobs for a day"""
    summaries = await service.get_travel(date, parse_resource_ids(resourceIds))
    return [travel_response(s) for s in summaries]


@router.post("/conflicts", response_model=ConflictReportResponse)
async def check_conflicts(
    data: ConflictCheckRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Check whether a booking would double-book any assigned photographer"""
    report = await service.check_conflicts(data)
    return conflict_report_response(report)


@router.post("/suggestions", response_model=list[SlotSuggestionResponse])
async def suggest_slots(
    data: SuggestionRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Suggest free start times, nearest to the previous stop first"""
    suggestions = await service.suggest_slots(data)
    return [suggestion_response(s) for s in suggestions]
