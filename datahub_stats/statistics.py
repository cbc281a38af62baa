"""
Descriptive statistics over numeric samples. Pure functions with no side
effects.

Standard deviation is the population form (divide by n, not n - 1).
None of these functions know whether their input was filtered.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Iterable

import numpy as np
import pandas as pd

from .config import STD_DEV_THRESHOLD_FACTOR
from .errors import EmptySample
from .records import Records, category_series, prepare_records, to_frame

logger = logging.getLogger(__name__)

STAT_FIELDS = [
    "count", "total", "average", "median", "min", "max", "standard_deviation",
]


@dataclass(frozen=True)
class Statistics:
    count: int = 0
    total: float = 0.0
    average: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    standard_deviation: float = 0.0

    @classmethod
    def zero(cls) -> "Statistics":
        """The 'no data' record: every field 0."""
        return cls()

    def to_dict(self) -> dict:
        return asdict(self)


def _clean_sample(sample: Iterable) -> np.ndarray:
    values = pd.to_numeric(pd.Series(list(sample), dtype=object), errors="coerce")
    return values.dropna().to_numpy(dtype=float)


def describe(sample: Iterable) -> Statistics:
    """Compute count, total, mean, median, extrema and population std dev.

    Non-numeric and NaN entries are ignored.

    Raises
    ------
    EmptySample if no numeric values remain.
    """
    values = _clean_sample(sample)
    if values.size == 0:
        raise EmptySample("Cannot compute statistics on an empty sample")

    return Statistics(
        count=int(values.size),
        total=float(values.sum()),
        average=float(values.mean()),
        median=float(np.median(values)),
        min=float(values.min()),
        max=float(values.max()),
        standard_deviation=float(values.std(ddof=0)),
    )


def compute_statistics(sample: Iterable) -> Statistics:
    """Like describe(), but an empty sample yields Statistics.zero()."""
    try:
        return describe(sample)
    except EmptySample:
        logger.debug("Empty sample; returning zero statistics")
        return Statistics.zero()


def daily_statistics(
    records: Records,
    value_field: str = "mean_response_time_ms",
    timestamp_field: str = "timestamp",
) -> pd.DataFrame:
    """One row of statistics per calendar date, dates ascending.

    Returns
    -------
    DataFrame with columns:
        date, count, total, average, median, min, max, standard_deviation
    """
    columns = ["date", *STAT_FIELDS]
    df, _ = prepare_records(records, timestamp_field)
    if df.empty or value_field not in df.columns:
        return pd.DataFrame(columns=columns)

    values = pd.to_numeric(df[value_field], errors="coerce")
    rows = []
    for day, group in values.groupby(df["date"], sort=True):
        rows.append({"date": day, **compute_statistics(group).to_dict()})

    result = pd.DataFrame(rows, columns=columns)
    logger.info("Built daily statistics for %d dates", len(result))
    return result


def response_time_band(
    daily: pd.DataFrame,
    threshold_factor: float = STD_DEV_THRESHOLD_FACTOR,
) -> dict:
    """One-sigma band around the daily average, plus the anomaly threshold.

    Parameters
    ----------
    daily : Output of daily_statistics().

    Returns
    -------
    Dict with per-date lists (dates, average, median, min, max, upper,
    lower, std_dev), the mean daily std dev, the threshold
    (avg_std_dev * threshold_factor), and the dates above it.
    """
    if daily.empty:
        return {
            "dates": [], "average": [], "median": [], "min": [], "max": [],
            "upper": [], "lower": [], "std_dev": [],
            "avg_std_dev": 0.0, "std_dev_threshold": 0.0, "anomalous_dates": [],
        }

    average = daily["average"].astype(float)
    std_dev = daily["standard_deviation"].astype(float)
    avg_std_dev = float(std_dev.mean())
    threshold = avg_std_dev * threshold_factor

    return {
        "dates": daily["date"].tolist(),
        "average": average.tolist(),
        "median": daily["median"].astype(float).tolist(),
        "min": daily["min"].astype(float).tolist(),
        "max": daily["max"].astype(float).tolist(),
        "upper": (average + std_dev).tolist(),
        "lower": (average - std_dev).clip(lower=0).tolist(),
        "std_dev": std_dev.tolist(),
        "avg_std_dev": avg_std_dev,
        "std_dev_threshold": threshold,
        "anomalous_dates": daily.loc[std_dev > threshold, "date"].tolist(),
    }


def pooled_response_time(
    records: Records,
    mean_field: str = "mean_response_time_ms",
    std_field: str = "std_deviation_ms",
    count_field: str = "event_count",
) -> dict:
    """Overall response time from per-record means and deviations.

    mean is the unweighted mean of the record means; std_dev is the square
    root of the event-count-weighted mean of the record variances.
    """
    df = to_frame(records)
    if df.empty or mean_field not in df.columns:
        return {"mean": 0.0, "std_dev": 0.0, "count": 0}

    means = pd.to_numeric(df[mean_field], errors="coerce")
    valid = means.notna()
    means = means[valid]
    if means.empty:
        return {"mean": 0.0, "std_dev": 0.0, "count": 0}

    std_dev = 0.0
    if std_field in df.columns and count_field in df.columns:
        stds = pd.to_numeric(df.loc[valid, std_field], errors="coerce").fillna(0.0)
        counts = pd.to_numeric(df.loc[valid, count_field], errors="coerce").fillna(0.0)
        total_events = float(counts.sum())
        if total_events > 0:
            std_dev = math.sqrt(float(((counts / total_events) * stds ** 2).sum()))

    return {"mean": float(means.mean()), "std_dev": std_dev, "count": int(means.size)}


def statistics_by_category(
    records: Records,
    category_field: str,
    value_field: str = "mean_response_time_ms",
) -> dict[str, Statistics]:
    """Statistics of `value_field` per category value, keys ascending."""
    df = to_frame(records)
    if df.empty or value_field not in df.columns:
        return {}
    keys = category_series(df, category_field)
    values = pd.to_numeric(df[value_field], errors="coerce")
    return {
        str(key): compute_statistics(group)
        for key, group in values.groupby(keys, sort=True)
    }


def growth_pct(current: float, previous: float) -> float:
    """Percentage change from previous to current; 0 when previous <= 0."""
    if previous is None or previous <= 0:
        return 0.0
    return ((current - previous) / previous) * 100
