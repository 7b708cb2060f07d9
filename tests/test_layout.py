import random
from datetime import date, datetime, time

import pytest
from conftest import make_job

from app.domain.scheduling.layout import (
    AGENDA_TODAY,
    AGENDA_UPCOMING,
    build_agenda,
    build_day_grid,
    build_month_grid,
    build_week_grid,
    current_time_marker,
    month_grid_bounds,
)
from app.domain.scheduling.materializer import materialize_events


def events_for(*records):
    return materialize_events(records).events


class TestMonthGrid:
    @pytest.mark.parametrize(
        "reference, cells",
        [
            (date(2021, 2, 10), 35),  # 28 days starting on a Monday
            (date(2024, 3, 15), 35),
            (date(2024, 9, 15), 42),
            (date(2024, 6, 1), 35),
            (date(2024, 2, 29), 35),
            (date(2026, 8, 31), 42),
        ],
    )
    def test_whole_weeks_starting_monday(self, reference, cells):
        grid = build_month_grid(reference, [])
        assert len(grid.cells) == cells
        assert all(len(week) == 7 for week in grid.weeks)
        assert grid.first_day.weekday() == 0
        assert grid.last_day.weekday() == 6

    @pytest.mark.parametrize("month", range(1, 13))
    def test_grid_covers_the_month(self, month):
        grid = build_month_grid(date(2025, month, 1), [])
        in_month = [cell.day for cell in grid.cells if cell.in_month]
        assert in_month[0] == date(2025, month, 1)
        assert in_month[0].month == in_month[-1].month == month
        assert len(grid.cells) in (35, 42)

    def test_bounds_match_cells(self):
        first, last = month_grid_bounds(date(2024, 9, 15))
        assert (first, last) == (date(2024, 8, 26), date(2024, 10, 6))

    def test_overflow_label(self):
        records = [make_job(f"j{i}", start=f"{8 + i}:00") for i in range(5)]
        grid = build_month_grid(date(2024, 3, 1), events_for(*records))
        cell = next(c for c in grid.cells if c.day == date(2024, 3, 5))
        assert [e.id for e in cell.events] == ["j0", "j1", "j2"]
        assert cell.hidden_count == 2
        assert cell.overflow_label == "+2 more"
        assert cell.total_events == 5

    def test_no_overflow_label_when_everything_fits(self):
        grid = build_month_grid(date(2024, 3, 1), events_for(make_job("j1")))
        cell = next(c for c in grid.cells if c.day == date(2024, 3, 5))
        assert cell.overflow_label is None

    def test_today_and_adjacent_month_flags(self):
        grid = build_month_grid(date(2024, 3, 1), [], today=date(2024, 3, 5))
        assert [c.day for c in grid.cells if c.is_today] == [date(2024, 3, 5)]
        assert not grid.cells[0].in_month  # Feb 26

    def test_negative_visible_count_rejected(self):
        with pytest.raises(ValueError):
            build_month_grid(date(2024, 3, 1), [], max_visible=-1)


class TestTimeGrid:
    def test_event_anchors_to_slot_and_spans(self):
        grid = build_day_grid(
            date(2024, 3, 5), events_for(make_job("j1", start="09:15", duration=50))
        )
        column = grid.columns[0]
        placement = column.placements[0]
        assert column.slots[placement.slot_index].start == datetime(2024, 3, 5, 9, 0)
        assert placement.slot_index == 2  # 08:00, 08:30, 09:00
        assert placement.span == 2
        assert not placement.truncated

    def test_day_window_slots(self):
        column = build_day_grid(date(2024, 3, 5), []).columns[0]
        assert len(column.slots) == 24
        assert column.slots[0].start.time() == time(8, 0)
        assert column.slots[-1].end.time() == time(20, 0)

    def test_week_has_seven_monday_first_columns(self):
        grid = build_week_grid(date(2024, 3, 7), [])
        assert [c.day for c in grid.columns] == [date(2024, 3, d) for d in range(4, 11)]

    def test_every_event_placed_exactly_once(self):
        records = [
            make_job("a", start="09:00", duration=180),
            make_job("b", start="09:30"),
            make_job("c", start="10:00", day="2024-03-06", resource="p2"),
            make_job("d", start="15:45", duration=30, day="2024-03-08"),
        ]
        grid = build_week_grid(date(2024, 3, 5), events_for(*records))
        placed = [p.event.id for c in grid.columns for p in c.placements]
        assert sorted(placed) == ["a", "b", "c", "d"]

    def test_overlapping_blocks_get_lanes(self):
        records = [
            make_job("a", start="09:00"),
            make_job("b", start="09:30"),
            make_job("c", start="11:00"),
        ]
        column = build_day_grid(date(2024, 3, 5), events_for(*records)).columns[0]
        lanes = {p.event.id: (p.lane, p.lane_count) for p in column.placements}
        assert lanes == {"a": (0, 2), "b": (1, 2), "c": (0, 1)}

    def test_lane_reused_after_block_ends(self):
        records = [
            make_job("a", start="09:00", duration=120),
            make_job("b", start="09:00"),
            make_job("c", start="10:00"),
        ]
        column = build_day_grid(date(2024, 3, 5), events_for(*records)).columns[0]
        lanes = {p.event.id: p.lane for p in column.placements}
        assert lanes == {"a": 0, "b": 1, "c": 1}
        assert {p.lane_count for p in column.placements} == {2}

    def test_block_running_past_window_is_truncated(self):
        column = build_day_grid(
            date(2024, 3, 5), events_for(make_job("late", start="19:30", duration=90))
        ).columns[0]
        placement = column.placements[0]
        assert placement.span == 3
        assert placement.visible_span == 1
        assert placement.truncated

    def test_events_outside_window_listed_separately(self):
        records = [make_job("early", start="06:30"), make_job("evening", start="20:00")]
        column = build_day_grid(date(2024, 3, 5), events_for(*records)).columns[0]
        assert column.placements == []
        assert [e.id for e in column.outside_window] == ["early", "evening"]

    def test_custom_window_and_slot(self):
        grid = build_day_grid(
            date(2024, 3, 5),
            events_for(make_job("j1", start="07:10", duration=20)),
            slot_minutes=15,
            day_start=time(7, 0),
            day_end=time(9, 0),
        )
        placement = grid.columns[0].placements[0]
        assert len(grid.columns[0].slots) == 8
        assert (placement.slot_index, placement.span) == (0, 2)

    def test_slots_counted_from_window_start(self):
        # 45-minute slots from 08:00: 08:00, 08:45, 09:30, ...
        grid = build_day_grid(
            date(2024, 3, 5),
            events_for(make_job("j1", start="08:00"), make_job("j2", start="09:40")),
            slot_minutes=45,
        )
        column = grid.columns[0]
        assert column.outside_window == []
        anchors = {p.event.id: column.slots[p.slot_index].start.time() for p in column.placements}
        assert anchors == {"j1": time(8, 0), "j2": time(9, 30)}

    def test_window_starting_between_slot_boundaries(self):
        records = [make_job("j1", start="07:20"), make_job("early", start="07:10")]
        column = build_day_grid(
            date(2024, 3, 5), events_for(*records), day_start=time(7, 15), day_end=time(12, 0)
        ).columns[0]
        assert [(p.event.id, p.slot_index) for p in column.placements] == [("j1", 0)]
        assert column.slots[0].start.time() == time(7, 15)
        assert [e.id for e in column.outside_window] == ["early"]

    def test_invalid_window_rejected(self):
        with pytest.raises(ValueError):
            build_day_grid(date(2024, 3, 5), [], day_start=time(18, 0), day_end=time(9, 0))

    def test_layout_is_deterministic(self):
        records = [
            make_job(f"j{i}", start=f"{8 + i % 6}:{(i * 15) % 60:02d}", resource=f"p{i % 3}")
            for i in range(12)
        ]
        shuffled = records[:]
        random.Random(7).shuffle(shuffled)

        first = build_week_grid(date(2024, 3, 5), events_for(*records))
        second = build_week_grid(date(2024, 3, 5), events_for(*records))
        third = build_week_grid(date(2024, 3, 5), events_for(*shuffled))
        assert first == second == third


class TestAgenda:
    @pytest.fixture
    def now(self):
        return datetime(2024, 3, 5, 10, 30)

    def test_today_and_upcoming_groups(self, now):
        records = [
            make_job("yesterday", day="2024-03-04"),
            make_job("morning", start="09:00"),
            make_job("noon", start="11:00"),
            make_job("friday", day="2024-03-08"),
            make_job("tomorrow", day="2024-03-06"),
        ]
        agenda = build_agenda(events_for(*records), now)
        assert agenda.today.kind == AGENDA_TODAY
        assert [e.id for e in agenda.today.events] == ["morning", "noon"]
        assert [(g.kind, g.day) for g in agenda.upcoming] == [
            (AGENDA_UPCOMING, date(2024, 3, 6)),
            (AGENDA_UPCOMING, date(2024, 3, 8)),
        ]

    def test_now_marker_position(self, now):
        # 09:00 to 12:00, now at 10:30
        agenda = build_agenda(
            events_for(make_job("a", start="09:00"), make_job("b", start="11:00")), now
        )
        assert agenda.today.now_marker == pytest.approx(0.5)

    def test_now_marker_clamped(self):
        events = events_for(make_job("a", start="09:00"))
        assert current_time_marker(events, datetime(2024, 3, 5, 7, 0)) == 0.0
        assert current_time_marker(events, datetime(2024, 3, 5, 18, 0)) == 1.0

    def test_no_marker_without_events_today(self, now):
        agenda = build_agenda(events_for(make_job("later", day="2024-03-06")), now)
        assert agenda.today.events == []
        assert agenda.today.now_marker is None
