"""
Job record adapter.

Job rows reach the calendar from several places: the database, the booking
form payloads and older order exports. Field names come in snake_case
(scheduled_date) or camelCase (scheduledDate), and some fields are missing.
Everything is normalized here into one JobRecord so the rest of the engine
only ever sees one shape.
"""

import math
from collections.abc import Mapping
from datetime import date, datetime, time
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

RESOURCE_ID_KEYS = (
    "resource_id",
    "resourceId",
    "user_id",
    "userId",
    "photographer_id",
    "photographerId",
)


class JobRecordError(ValueError):
    """Raised when a raw record can't be turned into a JobRecord"""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _optional_int(value: Any) -> Optional[int]:
    number = _optional_float(value)
    return int(number) if number is not None else None


class AssignmentRecord(BaseModel):
    """A resource assigned to a job"""

    model_config = ConfigDict(frozen=True)

    resource_id: str = Field(validation_alias=AliasChoices(*RESOURCE_ID_KEYS))
    role: str = "photographer"
    is_primary: bool = Field(default=False, validation_alias=AliasChoices("is_primary", "isPrimary"))

    @field_validator("resource_id", mode="before")
    @classmethod
    def coerce_resource_id(cls, v):
        if v is None or str(v).strip() == "":
            raise ValueError("resource id is required")
        return str(v).strip()

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v):
        return v or "photographer"

    @field_validator("is_primary", mode="before")
    @classmethod
    def coerce_primary(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes")
        return bool(v)


class JobRecord(BaseModel):
    """Canonical job shape consumed by the materializer and conflict checks"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("job_title", "jobTitle", "title", "package"),
    )
    scheduled_date: Optional[Union[date, str]] = Field(
        default=None, validation_alias=AliasChoices("scheduled_date", "scheduledDate")
    )
    scheduled_time: Optional[Union[time, str]] = Field(
        default=None, validation_alias=AliasChoices("scheduled_time", "scheduledTime")
    )
    duration_minutes: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("duration_minutes", "durationMinutes")
    )
    latitude: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("property_latitude", "propertyLatitude", "latitude", "lat"),
    )
    longitude: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("property_longitude", "propertyLongitude", "longitude", "lng"),
    )
    drive_time_minutes: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices(
            "drive_time_minutes", "driveTimeMinutes", "driving_time_min", "drivingTimeMin"
        ),
    )
    status: Optional[str] = None
    assignments: tuple[AssignmentRecord, ...] = Field(
        default=(),
        validation_alias=AliasChoices("assignments", "team_assignments", "teamAssignments"),
    )

    @model_validator(mode="before")
    @classmethod
    def flatten_legacy_fields(cls, data):
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        # Nested {lat, lng} objects from the address picker
        for key in ("coordinates", "propertyCoordinates", "property_coordinates"):
            coords = data.get(key)
            if isinstance(coords, Mapping):
                data.setdefault("property_latitude", coords.get("lat", coords.get("latitude")))
                data.setdefault("property_longitude", coords.get("lng", coords.get("longitude")))

        # Single-photographer orders carry the id at the top level
        has_assignments = any(
            data.get(key) for key in ("assignments", "team_assignments", "teamAssignments")
        )
        if not has_assignments:
            for key in RESOURCE_ID_KEYS:
                if data.get(key) not in (None, ""):
                    data["assignments"] = [{"resource_id": data[key], "is_primary": True}]
                    break
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if v is None or str(v).strip() == "":
            raise ValueError("job id is required")
        return str(v).strip()

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        if isinstance(v, datetime):
            return v.date()
        if v is None or isinstance(v, date):
            return v
        return str(v)

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def coerce_time(cls, v):
        if v is None or isinstance(v, time):
            return v
        if isinstance(v, datetime):
            return v.time()
        return str(v)

    @field_validator("duration_minutes", "drive_time_minutes", mode="before")
    @classmethod
    def coerce_minutes(cls, v):
        return _optional_int(v)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def coerce_coordinate(cls, v):
        return _optional_float(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return str(v).strip().lower() if v else None

    @field_validator("assignments", mode="before")
    @classmethod
    def coerce_assignments(cls, v):
        if not v:
            return ()
        items = []
        for item in v:
            if isinstance(item, (str, int)):
                items.append({"resource_id": item})
            else:
                items.append(item)
        return tuple(items)

    @property
    def resource_ids(self) -> list[str]:
        return [a.resource_id for a in self.assignments]

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def normalize_job_record(raw: Union[Mapping, JobRecord]) -> JobRecord:
    """Convert one raw job mapping (either naming convention) into a JobRecord"""
    if isinstance(raw, JobRecord):
        return raw
    if not isinstance(raw, Mapping):
        raise JobRecordError(f"Unsupported job record type: {type(raw).__name__}")

    try:
        return JobRecord.model_validate(raw)
    except ValidationError as e:
        record_id = raw.get("id")
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise JobRecordError(
            f"Invalid job record ({fields})",
            record_id=str(record_id) if record_id is not None else None,
        ) from e
