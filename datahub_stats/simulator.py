"""
Simulated data generator for the datahub statistics dashboard.

Generates plausible usage, error and response-time records for the demo
pipeline and the Streamlit app. All values are synthetic.
"""

import numpy as np
import pandas as pd

# Seed for reproducibility
_SEED = 42

# ---------------------------------------------------------------------------
# Typical traffic parameters
# ---------------------------------------------------------------------------
_CHANNELS = {
    # channel: (daily events per record, base mean response ms, std cap ms)
    "REST_API": (60, 120, 80),
    "SOAP_API": (35, 200, 80),
    "EDI": (20, 500, 120),
    "FILE_UPLOAD": (8, 2000, 180),
}

_MESSAGE_TYPES = ["QUERY", "RESPONSE", "NOTIFICATION", "ERROR"]
_EVENT_IDS = ["EVENT_001", "EVENT_002", "EVENT_003", "EVENT_004"]
_PROCESS_GROUPS = ["BILLING", "METERING", "MARKET", "CUSTOMER"]
_MARKET_ROLES = ["DSO", "THP", "DDQ", "CAP"]

_ERROR_TYPES = {
    # errortype: error class
    "VALIDATION_ERROR": "validation_error",
    "DATA_FORMAT_ERROR": "validation_error",
    "AUTHORIZATION_ERROR": "validation_error",
    "TIMEOUT_ERROR": "system_error",
    "AUTHENTICATION_ERROR": "system_error",
    "SYSTEM_ERROR": "system_error",
}


def _rng(rng: np.random.Generator | None) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng(_SEED)


def generate_usage_records(
    start_date: str = "2024-01-01",
    n_days: int = 180,
    records_per_channel: int = 3,
    rng: np.random.Generator | None = None,
) -> list[dict]:
    """Generate simulated usage events, a few aggregated records per channel per day."""
    rng = _rng(rng)
    dates = pd.date_range(start_date, periods=n_days, freq="D")
    rows = []

    for day in dates:
        # Weekends carry less market traffic
        weekend_factor = 0.6 if day.dayofweek >= 5 else 1.0

        for channel, (base_count, _, _) in _CHANNELS.items():
            for _ in range(records_per_channel):
                hour = int(rng.integers(6, 22))
                count = int(max(1, rng.normal(base_count, base_count * 0.25) * weekend_factor))
                rows.append({
                    "event_timestamp": (day + pd.Timedelta(hours=hour)).isoformat(),
                    "channel": channel,
                    "messagetype": str(rng.choice(_MESSAGE_TYPES)),
                    "eventID": str(rng.choice(_EVENT_IDS)),
                    "process_group": str(rng.choice(_PROCESS_GROUPS)),
                    "marketRoleCode": str(rng.choice(_MARKET_ROLES)),
                    "event_count": count,
                })

    return rows


def generate_error_records(
    usage_records: list[dict],
    rng: np.random.Generator | None = None,
) -> list[dict]:
    """Generate error events at a 1-5% daily rate of the given usage volume."""
    rng = _rng(rng)
    if not usage_records:
        return []

    usage = pd.DataFrame(usage_records)
    usage["day"] = pd.to_datetime(usage["event_timestamp"]).dt.normalize()
    daily_totals = usage.groupby("day")["event_count"].sum()

    rows = []
    for day, total_events in daily_totals.items():
        error_rate = 0.01 + rng.random() * 0.04
        total_errors = int(total_events * error_rate)

        for errortype, error_class in _ERROR_TYPES.items():
            count = int(total_errors / len(_ERROR_TYPES) * (0.5 + rng.random()))
            if count <= 0:
                continue
            rows.append({
                "event_timestamp": day.isoformat(),
                "errortype": errortype,
                "type": error_class,
                "event_count": count,
            })

    return rows


def generate_response_time_records(
    usage_records: list[dict],
    rng: np.random.Generator | None = None,
) -> list[dict]:
    """Generate one response-time sample per channel per day of usage."""
    rng = _rng(rng)
    if not usage_records:
        return []

    usage = pd.DataFrame(usage_records)
    usage["day"] = pd.to_datetime(usage["event_timestamp"]).dt.normalize()

    rows = []
    for (channel, day), group in usage.groupby(["channel", "day"], sort=True):
        _, base_mean, std_cap = _CHANNELS.get(channel, (0, 150, 100))
        mean = base_mean + (rng.random() * 50 - 25)

        # 5-12% of the mean, capped per channel
        std_dev = min(mean * (0.05 + rng.random() * 0.07), std_cap * (0.5 + rng.random() * 0.5))
        # Occasional spikes
        if rng.random() < 0.08:
            std_dev *= 1.8

        first = group.iloc[0]
        rows.append({
            "timestamp": day.isoformat(),
            "channel": channel,
            "process_group": first["process_group"],
            "marketRoleCode": first["marketRoleCode"],
            "mean_response_time_ms": round(mean, 2),
            "std_deviation_ms": round(std_dev, 2),
            "event_count": int(group["event_count"].sum()),
        })

    return rows


def generate_all(
    start_date: str = "2024-01-01",
    n_days: int = 180,
    seed: int = _SEED,
) -> dict[str, list[dict]]:
    """Usage, error and response-time records sharing one random stream."""
    rng = np.random.default_rng(seed)
    usage = generate_usage_records(start_date, n_days, rng=rng)
    return {
        "usage": usage,
        "errors": generate_error_records(usage, rng=rng),
        "response_times": generate_response_time_records(usage, rng=rng),
    }
