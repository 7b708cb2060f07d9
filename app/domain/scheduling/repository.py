"""Job repository - data access for the calendar engine"""

import asyncio
from collections.abc import Collection
from datetime import date
from typing import Optional, Protocol

from sqlalchemy.orm import Session, selectinload

from ...models import Job, JobAssignment, Photographer
from .events import Coordinates, Resource


class JobRepository(Protocol):
    """What the calendar engine needs from persistence. Records may use either naming convention."""

    async def list_jobs(
        self, start: date, end: date, resource_ids: Optional[Collection[str]] = None
    ) -> list[dict]: ...

    async def list_resource_jobs(self, resource_id: str, day: date) -> list[dict]: ...

    async def list_resources(self) -> list[Resource]: ...


def job_to_record(job: Job) -> dict:
    """Serialize a Job row into a snake_case job record"""
    return {
        "id": job.id,
        "job_title": job.job_title,
        "order_number": job.order_number,
        "scheduled_date": job.scheduled_date,
        "scheduled_time": job.scheduled_time,
        "duration_minutes": job.duration_minutes,
        "drive_time_minutes": job.drive_time_minutes,
        "property_address": job.property_address,
        "property_latitude": job.property_latitude,
        "property_longitude": job.property_longitude,
        "status": job.status,
        "assignments": [
            {
                "resource_id": a.photographer_id,
                "role": a.role,
                "is_primary": a.is_primary,
            }
            for a in job.assignments
        ],
    }


def photographer_to_resource(photographer: Photographer) -> Resource:
    home_base = None
    if photographer.home_latitude is not None and photographer.home_longitude is not None:
        home_base = Coordinates(
            latitude=photographer.home_latitude, longitude=photographer.home_longitude
        )
    return Resource(
        id=photographer.id,
        name=photographer.name,
        color=photographer.color,
        home_base=home_base,
    )


class SqlJobQueries:
    """Synchronous queries against the jobs tables"""

    @staticmethod
    def get_jobs_between(
        db: Session, start: date, end: date, resource_ids: Optional[Collection[str]] = None
    ) -> list[Job]:
        """Jobs scheduled between start and end (inclusive), optionally limited to some photographers"""
        query = (
            db.query(Job)
            .options(selectinload(Job.assignments))
            .filter(Job.scheduled_date >= start, Job.scheduled_date <= end)
        )
        if resource_ids is not None:
            query = query.filter(
                Job.assignments.any(JobAssignment.photographer_id.in_(list(resource_ids)))
            )
        return query.order_by(Job.scheduled_date, Job.id).all()

    @staticmethod
    def get_jobs_for_photographer_on(db: Session, photographer_id: str, day: date) -> list[Job]:
        """All jobs a photographer is assigned to on one date, each job once"""
        return (
            db.query(Job)
            .options(selectinload(Job.assignments))
            .filter(
                Job.scheduled_date == day,
                Job.assignments.any(JobAssignment.photographer_id == photographer_id),
            )
            .order_by(Job.id)
            .all()
        )

    @staticmethod
    def get_active_photographers(db: Session) -> list[Photographer]:
        return (
            db.query(Photographer)
            .filter(Photographer.is_active.is_(True))
            .order_by(Photographer.name, Photographer.id)
            .all()
        )


class SqlJobRepository:
    """JobRepository backed by the SQLAlchemy session; queries run off the event loop"""

    def __init__(self, db: Session):
        self.db = db
        self.queries = SqlJobQueries()

    async def list_jobs(
        self, start: date, end: date, resource_ids: Optional[Collection[str]] = None
    ) -> list[dict]:
        def run():
            jobs = self.queries.get_jobs_between(self.db, start, end, resource_ids)
            return [job_to_record(job) for job in jobs]

        return await asyncio.to_thread(run)

    async def list_resource_jobs(self, resource_id: str, day: date) -> list[dict]:
        def run():
            jobs = self.queries.get_jobs_for_photographer_on(self.db, resource_id, day)
            return [job_to_record(job) for job in jobs]

        return await asyncio.to_thread(run)

    async def list_resources(self) -> list[Resource]:
        def run():
            return [
                photographer_to_resource(p)
                for p in self.queries.get_active_photographers(self.db)
            ]

        return await asyncio.to_thread(run)
