"""Date and time parsing for slot lookups.

Every time value entering the booking core passes through ``normalize_time``
so that storage and comparisons only ever see 24-hour values. The 12-hour
``H:MM AM/PM`` form is accepted here and nowhere else.
"""

import re
from datetime import date, datetime, time, timedelta

from app.core.exceptions import ValidationException

_TWELVE_HOUR_RE = re.compile(
    r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\s*(?P<marker>[A-Za-z.]+)$"
)
_TWENTY_FOUR_HOUR_RE = re.compile(r"^(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?$")

CANONICAL_TIME_FORMAT = "%H:%M:%S"


def normalize_time(value: str | time) -> time:
    """
    Normalize a request time to a 24-hour ``time``.

    Args:
        value: ``"H:MM AM"``/``"HH:MM PM"`` or ``"HH:MM[:SS]"``

    Returns:
        Time with the hour in 0-23

    Raises:
        ValidationException: If the value is missing or malformed
    """
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)

    if not isinstance(value, str) or not value.strip():
        raise ValidationException("Time is required")

    raw = value.strip()

    match = _TWELVE_HOUR_RE.match(raw)
    if match:
        marker = match.group("marker").replace(".", "").upper()
        if marker not in ("AM", "PM"):
            raise ValidationException(f"Invalid AM/PM marker in time '{raw}'")

        hour = int(match.group("hour"))
        if not 1 <= hour <= 12:
            raise ValidationException(f"Hour out of range in time '{raw}'")

        if marker == "AM":
            hour = 0 if hour == 12 else hour
        elif hour != 12:
            hour += 12

        return _build_time(raw, hour, match.group("minute"), match.group("second"))

    match = _TWENTY_FOUR_HOUR_RE.match(raw)
    if match:
        return _build_time(raw, int(match.group("hour")), match.group("minute"), match.group("second"))

    raise ValidationException(
        f"Invalid time '{raw}': expected 'H:MM AM/PM' or 'HH:MM:SS'"
    )


def _build_time(raw: str, hour: int, minute: str, second: str | None) -> time:
    try:
        return time(hour, int(minute), int(second or 0))
    except ValueError:
        raise ValidationException(f"Invalid time '{raw}'")


def format_time(value: time) -> str:
    """Render a time in the canonical ``HH:MM:SS`` form."""
    return value.strftime(CANONICAL_TIME_FORMAT)


def parse_date(value: str | date) -> date:
    """
    Parse a ``YYYY-MM-DD`` request date.

    Raises:
        ValidationException: If the value is missing or not a calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not isinstance(value, str) or not value.strip():
        raise ValidationException("Date is required")

    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationException(f"Invalid date '{value}': expected YYYY-MM-DD")


def slot_end_time(start: time, duration_minutes: int) -> time:
    """Compute the end of a slot, capped at the last second of the day."""
    start_dt = datetime.combine(date.min, start)
    end_dt = start_dt + timedelta(minutes=duration_minutes)
    if end_dt.date() != date.min:
        return time(23, 59, 59)
    return end_dt.time()


def horizon_dates(start: date, days: int) -> list[date]:
    """Dates of a forward window, ``start`` inclusive."""
    return [start + timedelta(days=offset) for offset in range(days)]


def check_advance_window(slot_date: date, today: date, max_advance_days: int) -> None:
    """
    Reject dates more than ``max_advance_days`` after ``today``.

    Slots are created on demand for any date in the window, so the window
    also bounds how many rows a caller can make the service store.

    Raises:
        ValidationException: If the date lies beyond the window
    """
    if slot_date > today + timedelta(days=max_advance_days):
        raise ValidationException(
            f"Appointments can be made at most {max_advance_days} days in advance"
        )
