import os

# Keep the app on an in-memory database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402

from app.domain.scheduling.events import Coordinates, Resource  # noqa: E402
from app.domain.scheduling.records import JobRecordError, normalize_job_record  # noqa: E402
from app.domain.scheduling.time_calculator import parse_calendar_date  # noqa: E402

HOME = Coordinates(latitude=40.0, longitude=-75.0)


def make_job(job_id, day="2024-03-05", start="09:00", duration=60, resource="p1", **extra):
    """Snake_case job record as the database serializes it"""
    record = {
        "id": job_id,
        "job_title": f"Shoot {job_id}",
        "scheduled_date": day,
        "scheduled_time": start,
        "duration_minutes": duration,
        "status": "scheduled",
        "assignments": [{"resource_id": resource, "is_primary": True}] if resource else [],
    }
    record.update(extra)
    return record


class InMemoryJobRepository:
    """JobRepository over a list of raw records"""

    def __init__(self, records=None, resources=None):
        self.records = list(records or [])
        self.resources = list(resources or [])
        self.calls = []

    def _parsed(self, raw):
        try:
            record = normalize_job_record(raw)
        except JobRecordError:
            return None, None
        return record, parse_calendar_date(record.scheduled_date)

    async def list_jobs(self, start, end, resource_ids=None):
        self.calls.append(("list_jobs", start, end, resource_ids))
        selected = []
        for raw in self.records:
            record, day = self._parsed(raw)
            if record is None or day is None:
                # Unreadable rows are passed through so they get reported
                selected.append(raw)
                continue
            if not start <= day <= end:
                continue
            if resource_ids is not None and not set(record.resource_ids) & set(resource_ids):
                continue
            selected.append(raw)
        return selected

    async def list_resource_jobs(self, resource_id, day):
        self.calls.append(("list_resource_jobs", resource_id, day))
        selected = []
        for raw in self.records:
            record, record_day = self._parsed(raw)
            if record is not None and record_day == day and resource_id in record.resource_ids:
                selected.append(raw)
        return selected

    async def list_resources(self):
        self.calls.append(("list_resources",))
        return list(self.resources)


class FailingJobRepository(InMemoryJobRepository):
    """Lookups for the given resources raise, like a dropped database connection"""

    def __init__(self, failing_ids, records=None, resources=None):
        super().__init__(records, resources)
        self.failing_ids = set(failing_ids)

    async def list_resource_jobs(self, resource_id, day):
        if resource_id in self.failing_ids:
            raise ConnectionError("database unavailable")
        return await super().list_resource_jobs(resource_id, day)


@pytest.fixture
def resources():
    return [
        Resource(id="p1", name="Alice", color="#111111", home_base=HOME),
        Resource(id="p2", name="Bruno", color="#222222"),
    ]


@pytest.fixture
def repository(resources):
    return InMemoryJobRepository(resources=resources)


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 5, 10, 30)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def today(fixed_now) -> date:
    return fixed_now.date()
