"""
Record normalisation shared by the filter, aggregator and statistics
modules: timestamp to calendar date, category keys, numeric values.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping

import numpy as np
import pandas as pd

from .config import UNKNOWN_CATEGORY

logger = logging.getLogger(__name__)

Records = pd.DataFrame | Iterable[Mapping[str, Any]]
CategoryKey = str | Callable[[dict], Any]

# Strings must start with a YYYY-MM-DD date; "now", "May" or "12" are rejected
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def to_calendar_date(val: Any, tz: str | None = None) -> date | None:
    """Convert a record timestamp to its calendar date.

    Accepts ISO-8601 strings, datetime/date objects and pd.Timestamp.
    Other strings, including pandas shorthands such as "now" or "today",
    are treated as unparseable.
    Timezone-aware values are converted to `tz`, or to the local zone when
    `tz` is None, before the date is taken. Returns None for missing or
    unparseable values.
    """
    if val is None:
        return None
    if isinstance(val, date) and not isinstance(val, datetime):
        return val
    if isinstance(val, str):
        val = val.strip()
        if not _ISO_DATE.match(val):
            logger.debug("Not an ISO-8601 timestamp: %s", val)
            return None
    elif not isinstance(val, (datetime, np.datetime64)):
        return None

    try:
        ts = pd.Timestamp(val)
    except (ValueError, TypeError, OverflowError):
        logger.debug("Could not parse timestamp value: %s", val)
        return None
    if pd.isna(ts):
        return None

    if ts.tzinfo is not None:
        if tz:
            return ts.tz_convert(tz).date()
        return ts.to_pydatetime().astimezone().date()
    return ts.date()


def normalise_category(val: Any) -> str:
    """Return the category key for a raw attribute value.

    Missing, NaN and blank values map to UNKNOWN_CATEGORY.
    """
    if val is None:
        return UNKNOWN_CATEGORY
    if pd.api.types.is_scalar(val) and pd.isna(val):
        return UNKNOWN_CATEGORY
    key = str(val).strip()
    return key or UNKNOWN_CATEGORY


def to_frame(records: Records) -> pd.DataFrame:
    """Return records as a DataFrame without mutating the caller's data."""
    if isinstance(records, pd.DataFrame):
        return records.copy()
    rows = list(records or [])
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame.from_records(rows)


def prepare_records(
    records: Records,
    timestamp_field: str,
    tz: str | None = None,
) -> tuple[pd.DataFrame, int]:
    """Attach a `date` column and drop records without a usable timestamp.

    Returns
    -------
    (frame, skipped) where frame holds the valid records in input order and
    skipped is the number of malformed records that were excluded.
    """
    df = to_frame(records)
    if df.empty:
        return df.assign(date=pd.Series(dtype=object)), 0

    if timestamp_field in df.columns:
        dates = df[timestamp_field].map(lambda v: to_calendar_date(v, tz))
    else:
        dates = pd.Series([None] * len(df), index=df.index, dtype=object)

    valid = dates.notna()
    skipped = int((~valid).sum())
    if skipped:
        logger.warning(
            "Skipped %d record(s) with missing or unparseable '%s'",
            skipped, timestamp_field,
        )

    out = df.loc[valid].copy()
    out["date"] = dates[valid].astype(object)
    return out, skipped


def record_values(df: pd.DataFrame, value_field: str | None) -> pd.Series:
    """Numeric contribution of each record.

    Uses `value_field` where present and numeric; every other record
    contributes 1.
    """
    if value_field is None or value_field not in df.columns:
        return pd.Series(1, index=df.index, dtype="int64")
    values = pd.to_numeric(df[value_field], errors="coerce")
    if values.isna().any():
        return values.fillna(1)
    return values


def category_series(df: pd.DataFrame, category_key: CategoryKey) -> pd.Series:
    """Category key for each record, with UNKNOWN_CATEGORY for missing values."""
    if callable(category_key):
        raw = pd.Series(
            [category_key(row) for row in df.to_dict("records")],
            index=df.index,
            dtype=object,
        )
    elif category_key in df.columns:
        raw = df[category_key]
    else:
        raw = pd.Series([None] * len(df), index=df.index, dtype=object)

    keys = raw.map(normalise_category)
    unknown = int((keys == UNKNOWN_CATEGORY).sum())
    if unknown:
        logger.info("Bucketed %d record(s) under '%s'", unknown, UNKNOWN_CATEGORY)
    return keys
