import asyncio
from datetime import date

import pytest
from conftest import InMemoryJobRepository, make_job

from app.domain.scheduling.conflicts import ConflictCandidate, ConflictStatus
from app.domain.scheduling.controller import CalendarViewController, ViewMode
from app.domain.scheduling.layout import Agenda, MonthGrid, TimeGrid


class GatedJobRepository(InMemoryJobRepository):
    """list_jobs blocks until the test opens the gate"""

    def __init__(self, records=None, resources=None):
        super().__init__(records, resources)
        self.gate = asyncio.Event()
        self.pending = 0

    async def list_jobs(self, start, end, resource_ids=None):
        self.pending += 1
        await self.gate.wait()
        return await super().list_jobs(start, end, resource_ids)


@pytest.fixture
def records():
    return [
        make_job(
            "a",
            start="09:00",
            resource="p1",
            property_latitude=40.0,
            property_longitude=-74.9,
        ),
        make_job("b", start="11:00", resource="p2"),
        make_job("c", start="10:00", resource="p1", day="2024-03-06"),
        make_job("d", start="10:00", resource="p1", day="2024-04-20"),
    ]


@pytest.fixture
def controller(records, resources, clock):
    return CalendarViewController(InMemoryJobRepository(records, resources), clock=clock)


class TestSelectionState:
    def test_defaults_to_month_of_today(self, controller, today):
        assert controller.mode == ViewMode.MONTH
        assert controller.reference_date == today
        assert controller.resource_filter is None

    def test_changes_bump_generation(self, controller):
        start = controller.generation
        controller.set_mode("week")
        controller.set_reference_date(date(2024, 3, 12))
        controller.set_resource_filter(["p1"])
        assert controller.generation == start + 3

    def test_no_op_changes_keep_generation(self, controller, today):
        start = controller.generation
        controller.set_mode(ViewMode.MONTH)
        controller.set_reference_date(today)
        controller.set_resource_filter(None)
        assert controller.generation == start

    def test_unknown_mode_rejected(self, controller):
        with pytest.raises(ValueError):
            controller.set_mode("year")


class TestNavigation:
    def test_month_steps_clamp_day(self, controller):
        controller.set_reference_date(date(2024, 1, 31))
        controller.go_next()
        assert controller.reference_date == date(2024, 2, 29)
        controller.go_previous()
        assert controller.reference_date == date(2024, 1, 29)

    def test_week_and_day_steps(self, controller):
        controller.set_mode(ViewMode.WEEK)
        controller.go_next()
        assert controller.reference_date == date(2024, 3, 12)
        controller.set_mode(ViewMode.DAY)
        controller.go_previous()
        assert controller.reference_date == date(2024, 3, 11)

    def test_agenda_ignores_navigation(self, controller, today):
        controller.set_mode(ViewMode.AGENDA)
        generation = controller.generation
        controller.go_next()
        assert controller.reference_date == today
        assert controller.generation == generation

    def test_go_today(self, controller, today):
        controller.set_reference_date(date(2023, 7, 4))
        controller.go_today()
        assert controller.reference_date == today

    @pytest.mark.parametrize(
        "mode, expected",
        [
            (ViewMode.MONTH, (date(2024, 2, 26), date(2024, 3, 31))),
            (ViewMode.WEEK, (date(2024, 3, 4), date(2024, 3, 10))),
            (ViewMode.DAY, (date(2024, 3, 5), date(2024, 3, 5))),
            (ViewMode.AGENDA, (date(2024, 3, 5), date(2024, 4, 4))),
        ],
    )
    def test_visible_range(self, controller, mode, expected):
        controller.set_mode(mode)
        assert controller.visible_range() == expected


class TestRefresh:
    @pytest.mark.asyncio
    async def test_snapshot_holds_events_in_range(self, controller):
        snapshot = await controller.refresh()
        assert snapshot is controller.snapshot
        assert snapshot.generation == controller.generation
        assert [e.id for e in snapshot.events] == ["a", "b", "c"]
        assert [r.id for r in snapshot.resources] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_resource_filter_applied(self, controller):
        controller.set_resource_filter(["p2"])
        snapshot = await controller.refresh()
        assert [e.id for e in snapshot.events] == ["b"]
        assert controller.repository.calls[0] == (
            "list_jobs",
            date(2024, 2, 26),
            date(2024, 3, 31),
            ["p2"],
        )

    @pytest.mark.asyncio
    async def test_stale_response_discarded(self, records, resources, clock):
        repository = GatedJobRepository(records, resources)
        controller = CalendarViewController(
            repository, clock=clock, mode="day", reference_date=date(2024, 3, 5)
        )

        pending = asyncio.create_task(controller.refresh())
        while repository.pending == 0:
            await asyncio.sleep(0)
        controller.go_next()
        repository.gate.set()

        assert await pending is None
        assert controller.snapshot is None

    @pytest.mark.asyncio
    async def test_newer_refresh_wins(self, records, resources, clock):
        repository = GatedJobRepository(records, resources)
        controller = CalendarViewController(
            repository, clock=clock, mode="day", reference_date=date(2024, 3, 5)
        )

        older = asyncio.create_task(controller.refresh())
        while repository.pending == 0:
            await asyncio.sleep(0)
        controller.set_reference_date(date(2024, 3, 6))
        newer = asyncio.create_task(controller.refresh())
        while repository.pending < 2:
            await asyncio.sleep(0)
        repository.gate.set()

        older_result, newer_result = await asyncio.gather(older, newer)
        assert older_result is None
        assert newer_result is controller.snapshot
        assert controller.snapshot.reference_date == date(2024, 3, 6)
        assert [e.id for e in controller.snapshot.events] == ["c"]

    @pytest.mark.asyncio
    async def test_repository_errors_propagate(self, resources, clock):
        class BrokenRepository(InMemoryJobRepository):
            async def list_jobs(self, start, end, resource_ids=None):
                raise ConnectionError("database unavailable")

        controller = CalendarViewController(BrokenRepository([], resources), clock=clock)
        with pytest.raises(ConnectionError):
            await controller.refresh()
        assert controller.snapshot is None


class TestDerivedViews:
    def test_empty_layout_before_first_refresh(self, controller):
        grid = controller.render()
        assert isinstance(grid, MonthGrid)
        assert all(cell.events == [] for cell in grid.cells)

    @pytest.mark.asyncio
    async def test_render_per_mode(self, controller):
        await controller.refresh()
        month = controller.render()
        assert isinstance(month, MonthGrid)
        assert [c.is_today for c in month.cells].count(True) == 1

        controller.set_mode(ViewMode.WEEK)
        await controller.refresh()
        week = controller.render()
        assert isinstance(week, TimeGrid)
        assert len(week.columns) == 7

        controller.set_mode(ViewMode.DAY)
        await controller.refresh()
        day = controller.render()
        assert isinstance(day, TimeGrid)
        assert sorted(p.event.id for p in day.columns[0].placements) == ["a", "b"]

        controller.set_mode(ViewMode.AGENDA)
        await controller.refresh()
        agenda = controller.render()
        assert isinstance(agenda, Agenda)
        assert [e.id for e in agenda.today.events] == ["a", "b"]
        assert [g.day for g in agenda.upcoming] == [date(2024, 3, 6)]

    @pytest.mark.asyncio
    async def test_render_uses_fetched_selection(self, controller):
        await controller.refresh()
        controller.set_mode(ViewMode.DAY)
        # Not refreshed yet: still the month that was fetched
        assert isinstance(controller.render(), MonthGrid)

    @pytest.mark.asyncio
    async def test_travel_for_day(self, controller, today):
        assert controller.travel(today) == []
        await controller.refresh()
        summaries = controller.travel(today)
        assert [s.resource_id for s in summaries] == ["p1", "p2"]
        assert summaries[0].complete  # Alice has a home base and coordinates
        assert not summaries[1].complete

    @pytest.mark.asyncio
    async def test_suggest_respects_filter(self, controller, today):
        controller.set_resource_filter(["p1"])
        await controller.refresh()
        suggestions = controller.suggest(today, 60, limit=None)
        assert {s.resource_id for s in suggestions} == {"p1"}

    @pytest.mark.asyncio
    async def test_check_conflicts(self, controller):
        report = await controller.check_conflicts(
            ConflictCandidate(
                scheduled_date="2024-03-05", scheduled_time="9:30 AM", resource_ids=["p1"]
            )
        )
        assert report.status == ConflictStatus.CONFLICTS
        assert report.conflicts[0].conflicting_job_id == "a"

