"""
Record selection by date window, calendar year, and attribute values.
"""

import logging
from dataclasses import dataclass

import pandas as pd

from .date_range import DateRangeFilter
from .records import Records, prepare_records, to_frame

logger = logging.getLogger(__name__)

# Dropdown value meaning "no filter on this field"
ALL_VALUES = "all"


@dataclass(frozen=True)
class FilterResult:
    """Records that passed a filter, plus the count of malformed records dropped."""

    records: pd.DataFrame
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.records)


def filter_records(
    records: Records,
    date_range: DateRangeFilter | None,
    timestamp_field: str,
    tz: str | None = None,
) -> FilterResult:
    """Keep records whose calendar date lies within `date_range` (inclusive).

    Parameters
    ----------
    records : DataFrame or iterable of record mappings.
    date_range : Window to keep. None keeps every record with a valid date.
    timestamp_field : Name of the timestamp attribute.
    tz : Zone used to take the calendar date of tz-aware timestamps.
        Defaults to the local zone.

    Returns
    -------
    FilterResult whose `records` frame carries an added `date` column.
    Records without a usable timestamp are excluded and counted in `skipped`.
    """
    df, skipped = prepare_records(records, timestamp_field, tz=tz)
    if df.empty or date_range is None:
        return FilterResult(df, skipped)

    mask = df["date"].map(date_range.contains).astype(bool)
    result = df.loc[mask]

    logger.info(
        "Filtered %d of %d records to %s..%s",
        len(result), len(df),
        date_range.start_date.isoformat(), date_range.end_date.isoformat(),
    )
    return FilterResult(result, skipped)


def filter_year(
    records: Records,
    year: int,
    timestamp_field: str,
) -> FilterResult:
    """Keep records dated within the given calendar year."""
    year_range = DateRangeFilter(f"{year}-01-01", f"{year}-12-31")
    return filter_records(records, year_range, timestamp_field)


def filter_by_values(records: Records, **field_values: str | None) -> pd.DataFrame:
    """Keep records whose fields equal the given values.

    A value of None or "all" leaves that field unfiltered. Fields absent
    from the records match nothing.

    Example
    -------
    filter_by_values(df, channel="EDI", process_group="all")
    """
    df = to_frame(records)
    active = {
        field: value
        for field, value in field_values.items()
        if value is not None and value != ALL_VALUES
    }
    if df.empty or not active:
        return df

    mask = pd.Series(True, index=df.index)
    for field, value in active.items():
        if field not in df.columns:
            return df.iloc[0:0]
        mask &= df[field].astype(str) == str(value)

    return df.loc[mask]
