"""
Travel time estimation for a photographer's day.

Legs are estimated with a straight-line heuristic behind the
TravelTimeProvider protocol; a routing provider can replace it without
touching layout or conflict code.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from typing import Optional, Protocol

from pydantic import BaseModel

from ...config import TRAVEL_AVERAGE_SPEED_KMH
from .events import CalendarEvent, Coordinates, Resource

logger = logging.getLogger(__name__)

HOME_BASE_ID = "home"
EARTH_RADIUS_KM = 6371.0

LEG_SOURCE_DECLARED = "declared"
LEG_SOURCE_DISTANCE = "distance"
LEG_SOURCE_UNKNOWN = "unknown"


class TravelEstimate(BaseModel):
    minutes: int
    distance_km: Optional[float] = None


class Leg(BaseModel):
    """One travel segment. minutes is None when it can't be estimated."""

    from_id: str
    to_id: str
    minutes: Optional[int] = None
    distance_km: Optional[float] = None
    source: str = LEG_SOURCE_UNKNOWN

    @property
    def is_known(self) -> bool:
        return self.minutes is not None


class TravelSummary(BaseModel):
    resource_id: Optional[str] = None
    day: Optional[date] = None
    total_minutes: int = 0
    legs: list[Leg] = []
    complete: bool = True

    @property
    def unknown_legs(self) -> int:
        return sum(1 for leg in self.legs if not leg.is_known)


class TravelTimeProvider(Protocol):
    def estimate(self, origin: Coordinates, destination: Coordinates) -> TravelEstimate: ...


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance in km"""
    lat1, lon1 = math.radians(origin.latitude), math.radians(origin.longitude)
    lat2, lon2 = math.radians(destination.latitude), math.radians(destination.longitude)
    d_lat = lat2 - lat1
    d_lon = lon2 - lon1
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class StraightLineTravelTimeProvider:
    """Distance / average speed. Minutes are rounded up to whole minutes."""

    def __init__(self, average_speed_kmh: float = TRAVEL_AVERAGE_SPEED_KMH):
        if average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be positive")
        self.average_speed_kmh = average_speed_kmh

    @property
    def minutes_per_km(self) -> float:
        return 60.0 / self.average_speed_kmh

    def estimate(self, origin: Coordinates, destination: Coordinates) -> TravelEstimate:
        distance = haversine_km(origin, destination)
        return TravelEstimate(
            minutes=math.ceil(distance * self.minutes_per_km),
            distance_km=round(distance, 3),
        )


def order_day_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    """Start time ascending, ties broken by event id"""
    return sorted(events, key=lambda e: (e.start, e.id))


def _distance_leg(
    provider: TravelTimeProvider,
    from_id: str,
    origin: Optional[Coordinates],
    event: CalendarEvent,
) -> Leg:
    if origin is None or event.location is None:
        return Leg(from_id=from_id, to_id=event.id)
    estimate = provider.estimate(origin, event.location)
    return Leg(
        from_id=from_id,
        to_id=event.id,
        minutes=estimate.minutes,
        distance_km=estimate.distance_km,
        source=LEG_SOURCE_DISTANCE,
    )


def estimate_day_travel(
    events: Iterable[CalendarEvent],
    home_base: Optional[Coordinates] = None,
    provider: Optional[TravelTimeProvider] = None,
    resource_id: Optional[str] = None,
    day: Optional[date] = None,
) -> TravelSummary:
    """
    Per-leg and total travel for one resource's day.

    The first leg runs from the home base and prefers the job's own declared
    drive time. Later legs are distance based. Legs missing an endpoint are
    reported with minutes=None, left out of the total, and mark the summary
    incomplete.
    """
    provider = provider or StraightLineTravelTimeProvider()
    ordered = order_day_events(events)
    legs: list[Leg] = []

    for index, event in enumerate(ordered):
        if index == 0:
            if event.drive_time_minutes is not None and event.drive_time_minutes >= 0:
                legs.append(
                    Leg(
                        from_id=HOME_BASE_ID,
                        to_id=event.id,
                        minutes=event.drive_time_minutes,
                        source=LEG_SOURCE_DECLARED,
                    )
                )
            else:
                legs.append(_distance_leg(provider, HOME_BASE_ID, home_base, event))
            continue

        previous = ordered[index - 1]
        legs.append(_distance_leg(provider, previous.id, previous.location, event))

    known = [leg.minutes for leg in legs if leg.minutes is not None]
    complete = len(known) == len(legs)
    if not complete:
        logger.debug(
            f"🚗 Travel estimate incomplete for {resource_id or 'resource'} on {day}: "
            f"{len(legs) - len(known)} unknown legs"
        )

    return TravelSummary(
        resource_id=resource_id,
        day=day,
        total_minutes=sum(known),
        legs=legs,
        complete=complete,
    )


def summarize_travel(
    events: Iterable[CalendarEvent],
    day: date,
    resources: Optional[Iterable[Resource]] = None,
    provider: Optional[TravelTimeProvider] = None,
) -> list[TravelSummary]:
    """One travel summary per resource with active events on `day`, ordered by resource id"""
    home_bases = {r.id: r.home_base for r in resources or ()}
    by_resource: dict[str, list[CalendarEvent]] = defaultdict(list)
    for event in events:
        if event.resource_id is None or not event.is_active or event.start.date() != day:
            continue
        by_resource[event.resource_id].append(event)

    return [
        estimate_day_travel(
            by_resource[resource_id],
            home_base=home_bases.get(resource_id),
            provider=provider,
            resource_id=resource_id,
            day=day,
        )
        for resource_id in sorted(by_resource)
    ]
