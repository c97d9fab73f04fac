from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ValidationError
from .models import BLOCKING_STATUSES, BookingType, ReservationRecord

SLOT_LENGTH = timedelta(hours=1)
REFERENCE_TIMEZONE = "America/Argentina/Buenos_Aires"

_TIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Window start time must be earlier than end time.")

    def overlaps(self, other: "TimeWindow") -> bool:
        return has_time_overlap(self.start, self.end, other.start, other.end)


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by any amount.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 09:00-10:00 and 10:00-11:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and new_end > exist_start


def resolve_zone(zone: str | tzinfo) -> tzinfo:
    if isinstance(zone, tzinfo):
        return zone
    try:
        return ZoneInfo(zone)
    except ZoneInfoNotFoundError as error:
        raise ValueError(f"Unknown timezone: {zone}") from error


def local_day(instant: datetime, zone: str | tzinfo) -> date:
    """Calendar day of ``instant`` as seen in ``zone``."""
    return instant.astimezone(resolve_zone(zone)).date()


def parse_slot_start(day: str, time: str, zone: str | tzinfo) -> datetime:
    """Read a wall-clock day and time in ``zone`` and return the UTC instant."""
    text = f"{str(day).strip()} {str(time).strip()}"
    for fmt in _TIME_FORMATS:
        try:
            naive = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return naive.replace(tzinfo=resolve_zone(zone)).astimezone(timezone.utc)
    raise ValidationError(f"Could not read reservation day/time: {text!r}. Expected YYYY-MM-DD and HH:MM.")


def has_conflict(
    start: datetime,
    end: datetime,
    existing: Iterable[ReservationRecord],
    zone: str | tzinfo,
    same_day_only: bool = True,
    booking_type: BookingType | None = None,
) -> bool:
    """Return True if [start, end) overlaps any reservation that still holds its window.

    Cancelled reservations never conflict. With ``same_day_only`` only
    reservations starting on the candidate's calendar day in ``zone`` count.
    """
    if start >= end:
        raise ValueError("start must be earlier than end.")

    candidate_day = local_day(start, zone)
    for reservation in existing:
        if reservation.status not in BLOCKING_STATUSES:
            continue
        if booking_type is not None and reservation.booking_type != booking_type:
            continue
        if same_day_only and local_day(reservation.start_time, zone) != candidate_day:
            continue
        if has_time_overlap(start, end, reservation.start_time, reservation.end_time):
            return True
    return False
