"""
Record repositories keyed by reporting period ("YYYY-MM").

The engine only reads from a repository; fetching, caching and retrying
belong to whoever fills it.
"""

import logging
from datetime import date
from typing import Any, Mapping, Protocol

from .config import PERIOD_FORMAT
from .records import Records, prepare_records

logger = logging.getLogger(__name__)


def period_key(day: date) -> str:
    """Period identifier for a date, e.g. date(2024, 5, 2) -> "2024-05"."""
    return day.strftime(PERIOD_FORMAT)


class RecordRepository(Protocol):
    loading: bool
    error: str | None

    def get_records(self, period: str) -> list[Mapping[str, Any]]:
        ...

    def periods(self) -> list[str]:
        ...


class InMemoryRepository:
    """Read-only map from period key to record list."""

    def __init__(
        self,
        records_by_period: Mapping[str, list] | None = None,
        loading: bool = False,
        error: str | None = None,
    ):
        self._records = {k: list(v) for k, v in (records_by_period or {}).items()}
        self.loading = loading
        self.error = error

    @classmethod
    def from_records(cls, records: Records, timestamp_field: str) -> "InMemoryRepository":
        """Bucket records by the month of their timestamp.

        Records without a usable timestamp are left out.
        """
        df, skipped = prepare_records(records, timestamp_field)
        buckets: dict[str, list] = {}
        for row in df.to_dict("records"):
            day = row.pop("date")
            buckets.setdefault(period_key(day), []).append(row)

        logger.info(
            "Bucketed %d records into %d periods (%d skipped)",
            len(df), len(buckets), skipped,
        )
        return cls(buckets)

    def get_records(self, period: str) -> list[Mapping[str, Any]]:
        return list(self._records.get(period, []))

    def periods(self) -> list[str]:
        return sorted(self._records)


def all_records(repo: RecordRepository) -> list[Mapping[str, Any]]:
    """Every record in the repository, periods in ascending order."""
    out: list = []
    for period in repo.periods():
        out.extend(repo.get_records(period))
    return out


def records_for_year(repo: RecordRepository, year: int) -> list[Mapping[str, Any]]:
    """Records from every period of the given year, as in the summary panel."""
    prefix = f"{year}-"
    out: list = []
    for period in repo.periods():
        if period.startswith(prefix):
            out.extend(repo.get_records(period))
    return out
