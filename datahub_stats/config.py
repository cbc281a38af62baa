"""
Configuration: date-range presets, dataset registry, page sections, constants.

DATASET_REGISTRY maps each record family to its timestamp field, value
field, and the categorical fields the dashboard can stack or group by.
"""

# ---------------------------------------------------------------------------
# Date-range presets
# ---------------------------------------------------------------------------
# preset key -> window length in days
PRESET_DAYS: dict[str, int] = {
    "30days": 30,
    "60days": 60,
    "90days": 90,
    "year": 365,
}

CUSTOM_PRESET = "custom"
DEFAULT_PRESET = "90days"

PRESET_LABELS: dict[str, str] = {
    "30days": "30 days",
    "60days": "60 days",
    "90days": "90 days",
    "year": "1 year",
    "custom": "Custom",
}

# ---------------------------------------------------------------------------
# Dataset registry
# ---------------------------------------------------------------------------
# timestamp_field: column holding the event timestamp
# value_field: numeric column summed by the aggregator
# category_fields: columns usable as a stacking / breakdown key
DATASET_REGISTRY: dict[str, dict] = {
    "usage": {
        "timestamp_field": "event_timestamp",
        "value_field": "event_count",
        "category_fields": ["channel", "process_group", "marketRoleCode"],
    },
    "errors": {
        "timestamp_field": "event_timestamp",
        "value_field": "event_count",
        "category_fields": ["errortype", "type"],
    },
    "response_times": {
        "timestamp_field": "timestamp",
        "value_field": "mean_response_time_ms",
        "category_fields": ["channel", "process_group", "marketRoleCode"],
    },
}

CATEGORY_LABELS: dict[str, str] = {
    "channel": "Channel",
    "process_group": "Process group",
    "marketRoleCode": "Market role",
    "errortype": "Error type",
    "type": "Error class",
}

# Records missing a categorical attribute are bucketed here
UNKNOWN_CATEGORY = "Unknown"

# Error classes counted as critical in the summary panel
CRITICAL_ERROR_CLASS = "system_error"
VALIDATION_ERROR_CLASS = "validation_error"

# ---------------------------------------------------------------------------
# Page sections (presentation order)
# ---------------------------------------------------------------------------
SECTIONS: tuple[str, ...] = ("usage", "errors", "response_times")

SECTION_LABELS: dict[str, str] = {
    "usage": "Usage",
    "errors": "Errors",
    "response_times": "Response times",
}

# ---------------------------------------------------------------------------
# Active-section tracking
# ---------------------------------------------------------------------------
DEBOUNCE_SECONDS = 0.15
MIN_INTERSECTION_RATIO = 0.1
HEADER_OFFSET_PX = 120
SCROLL_VIEWPORT_FRACTION = 0.3

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
# Assumed daily event volume used to express error counts as a rate
BASELINE_EVENTS_PER_DAY = 10_000
# Days whose deviation exceeds avg_std_dev * factor are flagged on the band chart
STD_DEV_THRESHOLD_FACTOR = 1.5
PERIOD_FORMAT = "%Y-%m"
