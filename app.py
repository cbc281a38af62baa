"""
Datahub Statistics: Interactive Dashboard

Run with:  streamlit run app.py
"""

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from datahub_stats.config import (
    CATEGORY_LABELS,
    CUSTOM_PRESET,
    DATASET_REGISTRY,
    DEFAULT_PRESET,
    PRESET_LABELS,
    SECTION_LABELS,
    SECTIONS,
)
from datahub_stats.date_range import (
    DateRangeFilter,
    available_range_from_records,
    match_preset,
    resolve_date_range,
)
from datahub_stats.errors import InvalidDateRange
from datahub_stats.repository import InMemoryRepository, all_records
from datahub_stats.simulator import generate_all
from datahub_stats.summary import (
    get_error_view,
    get_response_time_view,
    get_statistics_summary,
    get_usage_view,
)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Datahub Statistics",
    page_icon="⚡",
    layout="wide",
    initial_sidebar_state="expanded",
)

PALETTE = ["#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd", "#8c564b", "#e377c2", "#7f7f7f"]


# ---------------------------------------------------------------------------
# Data loading (cached)
# ---------------------------------------------------------------------------
@st.cache_data
def load_all_data():
    return generate_all("2024-01-01", n_days=270)


data = load_all_data()
repos = {
    name: InMemoryRepository.from_records(records, DATASET_REGISTRY[name]["timestamp_field"])
    for name, records in data.items()
}
available = available_range_from_records(data["usage"], "event_timestamp")

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("Datahub Statistics")
st.sidebar.markdown("Usage, errors and response times")
st.sidebar.divider()

if "preset" not in st.session_state:
    st.session_state["preset"] = DEFAULT_PRESET

preset_keys = list(PRESET_LABELS)
preset = st.sidebar.selectbox(
    "Quick select",
    preset_keys,
    index=preset_keys.index(st.session_state["preset"]),
    format_func=PRESET_LABELS.get,
)

if preset == CUSTOM_PRESET:
    default_range = resolve_date_range(DEFAULT_PRESET, available_range=available)
    start = st.sidebar.date_input(
        "Start date", default_range.start_date,
        min_value=available.start_date, max_value=available.end_date,
    )
    end = st.sidebar.date_input(
        "End date", default_range.end_date,
        min_value=available.start_date, max_value=available.end_date,
    )
    try:
        custom_range = DateRangeFilter(start, end)
    except InvalidDateRange as exc:
        st.sidebar.error(str(exc))
        st.stop()
    date_range = resolve_date_range(preset, custom_range, available)
    matched = match_preset(date_range, available)
    if matched != CUSTOM_PRESET:
        st.sidebar.caption(f"Matches preset: {PRESET_LABELS[matched]}")
else:
    date_range = resolve_date_range(preset, available_range=available)

st.session_state["preset"] = preset
st.sidebar.caption(f"{date_range.start_date:%d.%m.%Y} to {date_range.end_date:%d.%m.%Y}")

section = st.sidebar.radio("Section", ["overview", *SECTIONS], format_func=lambda s: SECTION_LABELS.get(s, "Overview"))

st.sidebar.divider()
st.sidebar.caption("Data: simulated datahub traffic")


# ---------------------------------------------------------------------------
# Helper: stacked daily bar chart
# ---------------------------------------------------------------------------
def stacked_chart(aggregation, title: str, yaxis_title: str) -> go.Figure:
    fig = go.Figure()
    for i, (category, values) in enumerate(aggregation.series.items()):
        fig.add_trace(go.Bar(
            x=aggregation.dates,
            y=values,
            name=category,
            marker_color=PALETTE[i % len(PALETTE)],
        ))
    fig.update_layout(
        title=title,
        barmode="stack",
        yaxis_title=yaxis_title,
        height=420,
        plot_bgcolor="rgba(0,0,0,0)",
        legend=dict(orientation="h", y=-0.2),
    )
    return fig


def breakdown_table(rows: list[dict]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=["category", "total", "share"])
    df["share"] = df["share"].apply(lambda x: f"{x:.1%}")
    return df


# ===========================================================================
# PAGE: Overview
# ===========================================================================
if section == "overview":
    st.title("Overview")
    year = available.end_date.year
    summary = get_statistics_summary(repos["usage"], repos["errors"], repos["response_times"], year)

    if summary["loading"]:
        st.info("Loading...")
    if summary["error"]:
        st.error(f"Could not load data: {summary['error']}")

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric(
            f"Events {year}",
            f"{summary['total_events']:,.0f}",
            delta=f"{summary['events_growth_pct']:+.1f}% vs {year - 1}",
        )
    with col2:
        st.metric("Error rate", f"{summary['error_rate_pct']:.2f} %")
        st.caption(
            f"Technical errors {summary['system_errors']:,.0f} pcs · "
            f"Validation errors {summary['validation_errors']:,.0f} pcs"
        )
    with col3:
        stats = summary["response_time"]
        st.metric("Response time, year to date", f"{summary['avg_response_time']:.0f} ms")
        st.caption(f"Median {stats.median:.0f} ms · Max {stats.max:.0f} ms · σ {stats.standard_deviation:.0f} ms")


# ===========================================================================
# PAGE: Usage
# ===========================================================================
elif section == "usage":
    st.title("Daily events")

    fields = DATASET_REGISTRY["usage"]["category_fields"]
    stacking = st.selectbox("Stack by", fields, format_func=CATEGORY_LABELS.get)

    usage = all_records(repos["usage"])
    filter_cols = st.columns(len(fields))
    filters = {}
    for col, field in zip(filter_cols, fields):
        options = ["all", *sorted({str(r.get(field)) for r in usage if r.get(field) is not None})]
        with col:
            filters[field] = st.selectbox(CATEGORY_LABELS[field], options)

    view = get_usage_view(usage, date_range, stacking, **filters)
    aggregation = view["aggregation"]

    if aggregation.is_empty:
        st.warning("No usage data for the selected range.")
    else:
        st.plotly_chart(
            stacked_chart(aggregation, f"Events by {CATEGORY_LABELS[stacking].lower()}", "Events"),
            use_container_width=True,
        )
        daily = view["daily"]
        c1, c2, c3 = st.columns(3)
        c1.metric("Total events", f"{daily['total']:,.0f}")
        c2.metric("Daily average", f"{daily['avg_daily']:,.0f}")
        c3.metric("Peak day", f"{daily['peak_daily']:,.0f}")

        st.subheader("Breakdowns")
        cols = st.columns(len(fields))
        for col, field in zip(cols, fields):
            with col:
                st.markdown(f"**{CATEGORY_LABELS[field]}**")
                st.dataframe(breakdown_table(view["breakdowns"][field]), use_container_width=True, hide_index=True)

    if view["skipped"]:
        st.caption(f"{view['skipped']} record(s) skipped for missing timestamps")


# ===========================================================================
# PAGE: Errors
# ===========================================================================
elif section == "errors":
    st.title("Errors")

    fields = DATASET_REGISTRY["errors"]["category_fields"]
    stacking = st.selectbox("Stack by", fields, format_func=CATEGORY_LABELS.get)
    view = get_error_view(all_records(repos["errors"]), date_range, stacking)
    aggregation = view["aggregation"]

    if aggregation.is_empty:
        st.warning("No error data for the selected range.")
    else:
        st.plotly_chart(
            stacked_chart(aggregation, f"Errors by {CATEGORY_LABELS[stacking].lower()}", "Errors"),
            use_container_width=True,
        )
        c1, c2, c3 = st.columns(3)
        c1.metric("Total errors", f"{view['daily']['total']:,.0f}")
        c2.metric("Average error rate", f"{view['avg_error_rate']:.2f} %")
        c3.metric("Critical (system) errors", f"{view['critical_errors']:,.0f}")

        rate_fig = go.Figure(go.Scatter(
            x=aggregation.dates, y=view["error_rate"],
            mode="lines+markers", line=dict(color="#d62728"),
        ))
        rate_fig.update_layout(title="Daily error rate", yaxis_title="%", height=300, plot_bgcolor="rgba(0,0,0,0)")
        st.plotly_chart(rate_fig, use_container_width=True)

        cols = st.columns(len(fields))
        for col, field in zip(cols, fields):
            with col:
                st.markdown(f"**{CATEGORY_LABELS[field]}**")
                st.dataframe(breakdown_table(view["breakdowns"][field]), use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: Response times
# ===========================================================================
elif section == "response_times":
    st.title("Response times")

    view = get_response_time_view(all_records(repos["response_times"]), date_range)
    band = view["band"]

    if not band["dates"]:
        st.warning("No response-time data for the selected range.")
    else:
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=band["dates"], y=band["upper"],
            line=dict(width=0), showlegend=False, hoverinfo="skip",
        ))
        fig.add_trace(go.Scatter(
            x=band["dates"], y=band["lower"],
            fill="tonexty", fillcolor="rgba(31, 119, 180, 0.15)",
            line=dict(width=0), name="±1σ",
        ))
        fig.add_trace(go.Scatter(
            x=band["dates"], y=band["average"],
            name="Average", line=dict(color="#1f77b4", width=2),
        ))
        fig.add_trace(go.Scatter(
            x=band["dates"], y=band["median"],
            name="Median", line=dict(color="#ff7f0e", dash="dash"),
        ))
        fig.update_layout(
            title="Daily response time",
            yaxis_title="ms",
            height=420,
            plot_bgcolor="rgba(0,0,0,0)",
        )
        st.plotly_chart(fig, use_container_width=True)

        overall = view["overall"]
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Average", f"{overall.average:.0f} ms")
        c2.metric("Median", f"{overall.median:.0f} ms")
        c3.metric("Std deviation", f"{overall.standard_deviation:.0f} ms")
        c4.metric("Days above σ threshold", len(band["anomalous_dates"]))

        st.subheader("By channel")
        by_channel = pd.DataFrame(
            [{"channel": channel, **stats.to_dict()} for channel, stats in view["by_channel"].items()]
        )
        st.dataframe(by_channel, use_container_width=True, hide_index=True)
