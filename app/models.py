"""
Persistence models for the scheduling backend.

Jobs, the photographers (crew) who shoot them, and the assignment table
linking the two. The calendar engine never writes these; it only reads a
window of jobs through the repository.
"""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


class Photographer(Base):
    """A crew member that can be assigned to jobs"""

    __tablename__ = "photographers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    color = Column(String(16), nullable=True)  # Hex color used by the calendar UI
    is_active = Column(Boolean, default=True, nullable=False)

    # Home base - starting point of the day for travel estimates
    home_latitude = Column(Float, nullable=True)
    home_longitude = Column(Float, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    assignments = relationship("JobAssignment", back_populates="photographer")


class Job(Base):
    """A booked shoot at a property"""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=generate_id)
    job_title = Column(String(255), nullable=True)
    order_number = Column(String(50), nullable=True, index=True)

    # Scheduling
    scheduled_date = Column(Date, nullable=True, index=True)
    scheduled_time = Column(String(10), nullable=True)  # "HH:MM" or "h:mm AM"
    duration_minutes = Column(Integer, nullable=True)
    drive_time_minutes = Column(Integer, nullable=True)  # Declared estimate from the booking form

    # Property
    property_address = Column(String(500), nullable=True)
    property_latitude = Column(Float, nullable=True)
    property_longitude = Column(Float, nullable=True)
    access_instructions = Column(Text, nullable=True)

    # scheduled, pending, confirmed, in_progress, completed, cancelled, unavailable
    status = Column(String(50), default="scheduled", nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    assignments = relationship(
        "JobAssignment",
        back_populates="job",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JobAssignment.id",
    )


class JobAssignment(Base):
    """Photographer assigned to a job"""

    __tablename__ = "job_assignments"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    photographer_id = Column(
        String(36), ForeignKey("photographers.id"), nullable=False, index=True
    )
    role = Column(String(50), default="photographer", nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)

    job = relationship("Job", back_populates="assignments")
    photographer = relationship("Photographer", back_populates="assignments")
