"""
Aggregation: group records by calendar date and by a categorical key into
stacked time series and ranked breakdowns.

All functions are pure; calling them twice with the same records returns
identical output.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

import pandas as pd

from .config import BASELINE_EVENTS_PER_DAY
from .records import (
    CategoryKey,
    Records,
    category_series,
    prepare_records,
    record_values,
    to_frame,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Aggregation:
    """Chart-ready result of aggregate().

    dates : distinct record dates, ascending. Dates without records are absent.
    series : category key -> per-date values aligned with `dates`, zero-filled.
        Keys are in ascending order.
    breakdown : category key -> total, ordered by descending total, ties by key.
    totals : per-date sum across all categories, aligned with `dates`.
    skipped : records dropped for a missing or unparseable timestamp.
    """

    dates: list[date] = field(default_factory=list)
    series: dict[str, list] = field(default_factory=dict)
    breakdown: dict[str, float] = field(default_factory=dict)
    totals: list = field(default_factory=list)
    skipped: int = 0

    @property
    def categories(self) -> list[str]:
        return list(self.series)

    @property
    def is_empty(self) -> bool:
        return not self.dates

    def to_dict(self) -> dict:
        """Plain dict with ISO date strings, for JSON or chart widgets."""
        return {
            "dates": [d.isoformat() for d in self.dates],
            "series": {k: list(v) for k, v in self.series.items()},
            "breakdown": dict(self.breakdown),
            "totals": list(self.totals),
            "skipped": self.skipped,
        }


def _rank(totals: dict) -> dict:
    return dict(sorted(totals.items(), key=lambda kv: (-kv[1], kv[0])))


def aggregate(
    records: Records,
    category_key: CategoryKey,
    timestamp_field: str = "event_timestamp",
    value_field: str | None = "event_count",
    tz: str | None = None,
) -> Aggregation:
    """Group records by date and category.

    Parameters
    ----------
    records : DataFrame or iterable of record mappings, already filtered to
        the window of interest.
    category_key : Field name, or a callable taking the record as a dict and
        returning its category. Missing values become config.UNKNOWN_CATEGORY.
    timestamp_field : Name of the timestamp attribute.
    value_field : Numeric attribute summed per cell. Records without it
        contribute 1.

    Returns
    -------
    Aggregation. Every valid record lands in exactly one (date, category) cell.
    """
    df, skipped = prepare_records(records, timestamp_field, tz=tz)
    if df.empty:
        return Aggregation(skipped=skipped)

    cells = pd.DataFrame({
        "date": df["date"],
        "category": category_series(df, category_key),
        "value": record_values(df, value_field),
    })

    pivot = cells.pivot_table(
        index="date",
        columns="category",
        values="value",
        aggfunc="sum",
        fill_value=0,
    )
    pivot = pivot.sort_index().sort_index(axis=1)

    by_category = cells.groupby("category")["value"].sum()
    breakdown = _rank(dict(zip(by_category.index, by_category.tolist())))

    result = Aggregation(
        dates=list(pivot.index),
        series={str(cat): pivot[cat].tolist() for cat in pivot.columns},
        breakdown=breakdown,
        totals=pivot.sum(axis=1).tolist(),
        skipped=skipped,
    )

    logger.info(
        "Aggregated %d records into %d dates x %d categories",
        len(cells), len(result.dates), len(result.series),
    )
    return result


def aggregate_by_field(
    records: Records,
    field_name: str,
    value_field: str | None = "event_count",
) -> dict[str, float]:
    """Total per value of `field_name`, keys ascending. No date handling."""
    df = to_frame(records)
    if df.empty:
        return {}
    cells = pd.DataFrame({
        "category": category_series(df, field_name),
        "value": record_values(df, value_field),
    })
    totals = cells.groupby("category")["value"].sum().sort_index()
    return dict(zip(totals.index, totals.tolist()))


def aggregate_by_date(
    records: Records,
    timestamp_field: str = "event_timestamp",
    value_field: str | None = "event_count",
) -> dict[date, float]:
    """Total per calendar date, dates ascending."""
    df, _ = prepare_records(records, timestamp_field)
    if df.empty:
        return {}
    totals = record_values(df, value_field).groupby(df["date"]).sum().sort_index()
    return dict(zip(totals.index, totals.tolist()))


def rank_breakdown(
    breakdown: dict[str, float],
    top_n: int | None = None,
) -> list[dict]:
    """Rows for a breakdown table: category, total, share of grand total.

    Ordered by descending total, ties by ascending key. `top_n` truncates
    after ranking; shares are always relative to the full total.
    """
    ranked = _rank(breakdown)
    grand_total = sum(ranked.values())
    rows = [
        {
            "category": key,
            "total": total,
            "share": (total / grand_total) if grand_total else 0.0,
        }
        for key, total in ranked.items()
    ]
    if top_n is not None:
        rows = rows[:max(0, top_n)]
    return rows


def daily_summary(aggregation: Aggregation) -> dict:
    """Total, average per day with data, peak day, and number of days."""
    totals = aggregation.totals
    if not totals:
        return {"total": 0, "avg_daily": 0.0, "peak_daily": 0, "days": 0}
    total = sum(totals)
    return {
        "total": total,
        "avg_daily": total / len(totals),
        "peak_daily": max(totals),
        "days": len(totals),
    }


def error_rate_series(
    aggregation: Aggregation,
    baseline: float = BASELINE_EVENTS_PER_DAY,
) -> list[float]:
    """Per-day error count as a percentage of an assumed daily event volume."""
    if baseline <= 0:
        return [0.0 for _ in aggregation.totals]
    return [(total / baseline) * 100 for total in aggregation.totals]
