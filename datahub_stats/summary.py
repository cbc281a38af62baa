"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end.
Each function returns plain dicts (holding dataclasses, lists and
DataFrames) suitable for rendering cards, stacked charts and tables.
"""

import logging

import pandas as pd

from .aggregation import (
    aggregate,
    aggregate_by_field,
    daily_summary,
    error_rate_series,
    rank_breakdown,
)
from .config import (
    CRITICAL_ERROR_CLASS,
    DATASET_REGISTRY,
    VALIDATION_ERROR_CLASS,
)
from .date_range import DateRangeFilter, available_range_from_records
from .errors import InvalidStacking
from .filtering import filter_by_values, filter_records
from .records import Records
from .repository import RecordRepository, records_for_year
from .statistics import (
    compute_statistics,
    daily_statistics,
    growth_pct,
    pooled_response_time,
    response_time_band,
    statistics_by_category,
)

logger = logging.getLogger(__name__)


def _dataset_fields(dataset: str, stacking: str | None = None) -> tuple[str, str, list[str]]:
    registry = DATASET_REGISTRY[dataset]
    category_fields = registry["category_fields"]
    if stacking is not None and stacking not in category_fields:
        raise InvalidStacking(dataset, stacking, category_fields)
    return registry["timestamp_field"], registry["value_field"], category_fields


def _column_total(records: list, field: str) -> float:
    return compute_statistics(r.get(field) for r in records).total


def get_statistics_summary(
    usage_repo: RecordRepository,
    error_repo: RecordRepository,
    response_repo: RecordRepository,
    year: int,
) -> dict:
    """Year-to-date numbers for the three summary cards.

    Returns
    -------
    Dict with structure:
    {
        "year": 2024,
        "loading": False, "error": None,
        "total_events": ..., "events_growth_pct": ...,
        "total_errors": ..., "error_rate_pct": ...,
        "system_errors": ..., "validation_errors": ...,
        "avg_response_time": ..., "response_time": Statistics(...),
    }
    Every number is 0 until all three repositories hold data for the year.
    "error" carries the first repository error message, or None.
    """
    usage_value = DATASET_REGISTRY["usage"]["value_field"]
    error_value = DATASET_REGISTRY["errors"]["value_field"]
    response_value = DATASET_REGISTRY["response_times"]["value_field"]

    summary: dict = {
        "year": year,
        "loading": any(r.loading for r in (usage_repo, error_repo, response_repo)),
        "error": next(
            (r.error for r in (usage_repo, error_repo, response_repo) if r.error is not None),
            None,
        ),
        "total_events": 0,
        "events_growth_pct": 0.0,
        "total_errors": 0,
        "error_rate_pct": 0.0,
        "system_errors": 0,
        "validation_errors": 0,
        "avg_response_time": 0.0,
        "response_time": compute_statistics([]),
    }
    if summary["error"] is not None:
        logger.warning("Repository error for %d: %s", year, summary["error"])

    usage = records_for_year(usage_repo, year)
    errors = records_for_year(error_repo, year)
    responses = records_for_year(response_repo, year)
    if not (usage and errors and responses):
        logger.warning("Incomplete data for %d; summary left at zero", year)
        return summary

    total_events = _column_total(usage, usage_value)
    previous_events = _column_total(records_for_year(usage_repo, year - 1), usage_value)
    total_errors = _column_total(errors, error_value)
    error_classes = aggregate_by_field(errors, "type", error_value)
    response_stats = compute_statistics(r.get(response_value) for r in responses)

    summary.update({
        "total_events": total_events,
        "events_growth_pct": growth_pct(total_events, previous_events),
        "total_errors": total_errors,
        "error_rate_pct": (total_errors / total_events * 100) if total_events else 0.0,
        "system_errors": error_classes.get(CRITICAL_ERROR_CLASS, 0),
        "validation_errors": error_classes.get(VALIDATION_ERROR_CLASS, 0),
        "avg_response_time": response_stats.average,
        "response_time": response_stats,
    })
    return summary


def get_usage_view(
    records: Records,
    date_range: DateRangeFilter | None,
    stacking: str = "channel",
    **field_filters: str | None,
) -> dict:
    """Stacked daily usage series plus breakdown tables for the usage section.

    Parameters
    ----------
    records : Usage records from every loaded period.
    date_range : Resolved window (see resolve_date_range).
    stacking : Category field splitting the series: channel, process_group
        or marketRoleCode.
    field_filters : Optional dropdown filters, e.g. channel="EDI".

    Returns
    -------
    Dict with keys: stacking, date_range, available_range, aggregation,
    daily, breakdowns, skipped.
    """
    ts_field, value_field, category_fields = _dataset_fields("usage", stacking)

    filtered = filter_records(records, date_range, ts_field)
    frame = filter_by_values(filtered.records, **field_filters)
    aggregation = aggregate(frame, stacking, ts_field, value_field)

    return {
        "stacking": stacking,
        "date_range": date_range,
        "available_range": available_range_from_records(records, ts_field),
        "aggregation": aggregation,
        "daily": daily_summary(aggregation),
        "breakdowns": {
            field: rank_breakdown(aggregate_by_field(frame, field, value_field))
            for field in category_fields
        },
        "skipped": filtered.skipped,
    }


def get_error_view(
    records: Records,
    date_range: DateRangeFilter | None,
    stacking: str = "errortype",
) -> dict:
    """Stacked daily error series, error rate, and breakdowns for the errors section.

    Returns
    -------
    Dict with keys: stacking, date_range, aggregation, daily, error_rate,
    avg_error_rate, peak_error_rate, critical_errors, breakdowns, skipped.
    """
    ts_field, value_field, category_fields = _dataset_fields("errors", stacking)

    filtered = filter_records(records, date_range, ts_field)
    aggregation = aggregate(filtered.records, stacking, ts_field, value_field)
    rates = error_rate_series(aggregation)
    classes = aggregate_by_field(filtered.records, "type", value_field)

    return {
        "stacking": stacking,
        "date_range": date_range,
        "aggregation": aggregation,
        "daily": daily_summary(aggregation),
        "error_rate": rates,
        "avg_error_rate": (sum(rates) / len(rates)) if rates else 0.0,
        "peak_error_rate": max(rates) if rates else 0.0,
        "critical_errors": classes.get(CRITICAL_ERROR_CLASS, 0),
        "breakdowns": {
            field: rank_breakdown(aggregate_by_field(filtered.records, field, value_field))
            for field in category_fields
        },
        "skipped": filtered.skipped,
    }


def get_response_time_view(
    records: Records,
    date_range: DateRangeFilter | None,
) -> dict:
    """Daily response-time statistics, the one-sigma band, and per-channel numbers.

    Returns
    -------
    Dict with keys: date_range, daily (DataFrame), band, overall
    (Statistics), by_channel, pooled, skipped.
    """
    ts_field, value_field, _ = _dataset_fields("response_times")

    filtered = filter_records(records, date_range, ts_field)
    frame = filtered.records
    daily = daily_statistics(frame, value_field, ts_field)

    if frame.empty or value_field not in frame.columns:
        sample = pd.Series(dtype=float)
    else:
        sample = frame[value_field]

    return {
        "date_range": date_range,
        "daily": daily,
        "band": response_time_band(daily),
        "overall": compute_statistics(sample),
        "by_channel": statistics_by_category(frame, "channel", value_field),
        "pooled": pooled_response_time(frame),
        "skipped": filtered.skipped,
    }
