"""
Datahub Statistics: usage, error and response-time analytics

Time-series aggregation and statistics engine behind the electricity
datahub statistics dashboard: resolves date windows against the data
available, filters and groups event records by date and category, and
computes descriptive statistics for charts and summary panels.

To plug in a real data source:
    Implement repository.RecordRepository (get_records(period) keyed by
    "YYYY-MM") over the CSV or database feed and pass its records to the
    summary functions. The record fields are listed in
    config.DATASET_REGISTRY.

To connect to Streamlit/Dash:
    Call summary.get_usage_view(records, date_range, stacking) and friends
    to get plain dicts for stacked charts, breakdown tables and cards.

To add a new stacking dimension:
    Add the field to the dataset's category_fields in
    config.DATASET_REGISTRY and a label to config.CATEGORY_LABELS.
"""
