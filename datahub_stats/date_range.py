"""
Date-range resolution: presets, custom ranges, and the data availability
window.

resolve_date_range() is a pure function; the only outside input is the
current date, which callers (and tests) may pin via `today`.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from .config import CUSTOM_PRESET, PRESET_DAYS
from .errors import InvalidDateRange, InvalidPreset
from .records import Records, prepare_records, to_calendar_date

logger = logging.getLogger(__name__)


def parse_date(value: Any) -> date:
    """Coerce an ISO string, date, or datetime to a calendar date."""
    parsed = to_calendar_date(value)
    if parsed is None:
        raise InvalidDateRange(f"Not a valid date: {value!r}")
    return parsed


@dataclass(frozen=True)
class DateRangeFilter:
    """Inclusive calendar-date window. Also used for the available-data range."""

    start_date: date
    end_date: date

    def __post_init__(self):
        start = parse_date(self.start_date)
        end = parse_date(self.end_date)
        if start > end:
            raise InvalidDateRange(
                f"start_date {start.isoformat()} is after end_date {end.isoformat()}"
            )
        object.__setattr__(self, "start_date", start)
        object.__setattr__(self, "end_date", end)

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> dict[str, str]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "DateRangeFilter":
        """Build from {"startDate", "endDate"} or {"start_date", "end_date"}."""
        start = raw.get("startDate", raw.get("start_date"))
        end = raw.get("endDate", raw.get("end_date"))
        return cls(start, end)


# Same shape; kept as a separate name where only data bounds are meant
AvailableDataRange = DateRangeFilter


def resolve_date_range(
    preset: str,
    custom_range: DateRangeFilter | None = None,
    available_range: DateRangeFilter | None = None,
    today: date | None = None,
) -> DateRangeFilter:
    """Turn a preset (or custom range) into a concrete date window.

    Parameters
    ----------
    preset : One of config.PRESET_DAYS keys, or "custom".
    custom_range : Returned unchanged when preset is "custom".
    available_range : Bounds of the loaded data. Its end date anchors the
        window, and the start date is clamped so the window never begins
        before data exists.
    today : Anchor when no available range is known. Defaults to date.today().

    Raises
    ------
    InvalidPreset if the preset is not recognised, or is "custom" without a
    custom range.
    """
    if preset == CUSTOM_PRESET and custom_range is not None:
        return custom_range

    days = PRESET_DAYS.get(preset)
    if days is None:
        raise InvalidPreset(preset)

    if available_range is not None:
        end_date = available_range.end_date
    else:
        end_date = today or date.today()

    start_date = end_date - timedelta(days=days)
    if available_range is not None and start_date < available_range.start_date:
        start_date = available_range.start_date

    return DateRangeFilter(start_date, end_date)


def available_range_from_records(
    records: Records,
    timestamp_field: str,
) -> DateRangeFilter | None:
    """Return the first and last record date, or None if no record has a valid date."""
    df, _ = prepare_records(records, timestamp_field)
    if df.empty:
        return None
    dates = df["date"]
    return DateRangeFilter(min(dates), max(dates))


def match_preset(
    date_range: DateRangeFilter,
    available_range: DateRangeFilter | None = None,
    today: date | None = None,
) -> str:
    """Return the preset whose resolved window equals `date_range`, else "custom".

    Used when the user edits the start or end date by hand.
    """
    for preset in PRESET_DAYS:
        if resolve_date_range(preset, available_range=available_range, today=today) == date_range:
            return preset
    return CUSTOM_PRESET
