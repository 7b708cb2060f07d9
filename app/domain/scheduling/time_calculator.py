"""Time parsing and calendar arithmetic shared by the scheduling engine"""

import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Jobs store time as "HH:MM" or "h:mm AM" depending on the booking flow.
# 24h is tried first, then the 12h forms.
CLOCK_TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p", "%I %p", "%I%p")

DATE_FORMATS = ("%m/%d/%Y",)


def parse_clock_time(value: Any) -> Optional[time]:
    """Parse a textual clock time. Returns None when the value can't be read."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    text = " ".join(str(value).split()).upper().replace(".", "")
    if not text:
        return None

    for fmt in CLOCK_TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time().replace(second=0)
        except ValueError:
            continue

    logger.debug(f"Failed to parse time format: {value!r}")
    return None


def parse_calendar_date(value: Any) -> Optional[date]:
    """
    Parse a scheduled date.

    Accepts date/datetime objects, ISO dates ("2025-03-04"), ISO timestamps
    ("2025-03-04T00:00:00Z" - only the calendar part is used) and US form
    dates ("03/04/2025").
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    if len(text) >= 10 and text[10:11] in ("", "T", " "):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    logger.debug(f"Failed to parse date format: {value!r}")
    return None


def format_clock_time(value: time) -> str:
    """24h "HH:MM" representation"""
    return value.strftime("%H:%M")


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def floor_to_slot(
    moment: datetime, slot_minutes: int, origin: Optional[datetime] = None
) -> datetime:
    """
    Start of the slot containing `moment`. Slots are counted from `origin`
    (midnight of the same day when not given); moments before the origin
    floor to a slot before it.
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    if origin is None:
        origin = datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)
    elapsed = (moment - origin) // timedelta(minutes=1)
    return origin + timedelta(minutes=(elapsed // slot_minutes) * slot_minutes)


def slot_span(duration_minutes: float, slot_minutes: int) -> int:
    """Number of slots a block of `duration_minutes` covers: ceil(duration / slot), at least 1"""
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    return max(1, math.ceil(duration_minutes / slot_minutes))


def week_start(day: date) -> date:
    """Monday on or before `day`"""
    return day - timedelta(days=day.weekday())


def month_bounds(day: date) -> tuple[date, date]:
    """First and last calendar day of the month containing `day`"""
    first = day.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length"""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    first = date(year, month + 1, 1)
    _, last = month_bounds(first)
    return first.replace(day=min(day.day, last.day))
