"""
Datahub Statistics: end-to-end analytics pipeline.

Runs the statistics engine on simulated records and prints smoke-test
summaries, then replays a scripted scroll session through the
active-section tracker.

Usage:
    python main.py
"""

import asyncio
import logging
from datetime import date

from datahub_stats.aggregation import rank_breakdown
from datahub_stats.config import DATASET_REGISTRY, SECTIONS
from datahub_stats.date_range import available_range_from_records, resolve_date_range
from datahub_stats.repository import InMemoryRepository, all_records
from datahub_stats.sections import ActiveSectionTracker, IntersectionEntry
from datahub_stats.simulator import generate_all
from datahub_stats.summary import (
    get_error_view,
    get_response_time_view,
    get_statistics_summary,
    get_usage_view,
)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


class _Subscription:
    def __init__(self, owner: list, item):
        self._owner = owner
        self._item = item

    def cancel(self) -> None:
        if self._item in self._owner:
            self._owner.remove(self._item)


class ScriptedViewport:
    """Minimal page model: fixed section offsets and a movable scroll position."""

    def __init__(self, loop: asyncio.AbstractEventLoop, tops: dict[str, float]):
        self._loop = loop
        self._tops = tops
        self._scroll_top = 0.0
        self.intersection_callbacks: list = []
        self.scroll_callbacks: list = []

    def observe_intersections(self, callback):
        self.intersection_callbacks.append(callback)
        return _Subscription(self.intersection_callbacks, callback)

    def add_scroll_listener(self, callback):
        self.scroll_callbacks.append(callback)
        return _Subscription(self.scroll_callbacks, callback)

    def request_animation_frame(self, callback):
        return self._loop.call_later(1 / 60, callback)

    def scroll_top(self) -> float:
        return self._scroll_top

    def viewport_height(self) -> float:
        return 900.0

    def section_top(self, section: str) -> float | None:
        return self._tops.get(section)

    def scroll_to(self, offset: float) -> None:
        self._scroll_top = offset
        for callback in list(self.scroll_callbacks):
            callback()

    def emit_intersections(self, entries: list[IntersectionEntry]) -> None:
        for callback in list(self.intersection_callbacks):
            callback(entries)


async def replay_scroll_session() -> list[str]:
    """Drive the tracker with intersection and scroll signals; return the transitions."""
    loop = asyncio.get_running_loop()
    host = ScriptedViewport(loop, {"usage": 600.0, "errors": 1800.0, "response_times": 3000.0})
    transitions: list[str] = []

    with ActiveSectionTracker(host, loop) as tracker:
        tracker.subscribe(transitions.append)
        await asyncio.sleep(0.05)

        host.emit_intersections([
            IntersectionEntry("errors", 0.6, 120.0),
            IntersectionEntry("usage", 0.3, -200.0),
        ])
        await asyncio.sleep(0.3)

        tracker.select("response_times")
        await asyncio.sleep(0.05)

    return transitions


def main() -> None:
    """Run the analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  DATAHUB STATISTICS: Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Load source data
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SIMULATED DATA")
    print("-" * 40)

    data = generate_all("2024-01-01", n_days=182)
    repos = {
        name: InMemoryRepository.from_records(records, DATASET_REGISTRY[name]["timestamp_field"])
        for name, records in data.items()
    }
    for name, repo in repos.items():
        print(f"  {name:15s} | {len(all_records(repo)):6d} records | periods {repo.periods()}")

    usage = all_records(repos["usage"])
    errors = all_records(repos["errors"])
    responses = all_records(repos["response_times"])

    # ------------------------------------------------------------------
    # 2. Resolve the date window
    # ------------------------------------------------------------------
    print("\n[ 2 ] RESOLVING DATE RANGE")
    print("-" * 40)

    available = available_range_from_records(usage, "event_timestamp")
    date_range = resolve_date_range("30days", available_range=available, today=date.today())
    print(f"  Available: {available.to_dict()}")
    print(f"  30 days:   {date_range.to_dict()}")

    # ------------------------------------------------------------------
    # 3. Dashboard outputs
    # ------------------------------------------------------------------
    print("\n[ 3 ] DASHBOARD OUTPUTS")
    print("-" * 40)

    summary = get_statistics_summary(repos["usage"], repos["errors"], repos["response_times"], 2024)
    for key, value in summary.items():
        print(f"  {key:20s} | {value}")

    usage_view = get_usage_view(usage, date_range, stacking="channel")
    aggregation = usage_view["aggregation"]
    print(f"\n  Usage by channel: {len(aggregation.dates)} days, categories {aggregation.categories}")
    for row in rank_breakdown(aggregation.breakdown):
        print(f"    {row['category']:15s} {row['total']:8.0f}  {row['share']:6.1%}")
    print(f"  Daily: {usage_view['daily']}")

    error_view = get_error_view(errors, date_range, stacking="type")
    print(f"\n  Errors by class: {error_view['aggregation'].breakdown}")
    print(f"  Avg error rate: {error_view['avg_error_rate']:.2f}%  peak {error_view['peak_error_rate']:.2f}%")

    response_view = get_response_time_view(responses, date_range)
    print(f"\n  Response time overall: {response_view['overall']}")
    print(f"  Pooled: {response_view['pooled']}")
    print(f"  Anomalous days: {response_view['band']['anomalous_dates']}")

    # ------------------------------------------------------------------
    # 4. Acceptance checks
    # ------------------------------------------------------------------
    print("\n[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    check1 = date_range.start_date <= date_range.end_date and date_range.start_date >= available.start_date
    print(f"  [{'PASS' if check1 else 'FAIL'}] Resolved range lies within available data")

    series_total = sum(sum(values) for values in aggregation.series.values())
    check2 = series_total == sum(aggregation.breakdown.values())
    print(f"  [{'PASS' if check2 else 'FAIL'}] Series total {series_total} equals breakdown total")

    transitions = asyncio.run(replay_scroll_session())
    check3 = transitions[:2] == ["errors", "response_times"]
    print(f"  [{'PASS' if check3 else 'FAIL'}] Section transitions {transitions} (sections {list(SECTIONS)})")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
