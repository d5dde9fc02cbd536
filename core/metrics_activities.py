from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.charts import category_count_chart, daily_trend_chart
from core.data import (
    count_week_windows,
    filter_frame,
    frame_records,
    group_aggregate,
    sort_frame,
    time_window_mask,
    timestamp_series,
    week_over_week,
)
from core.filters import TIME_WINDOWS, SortSpec, ViewFilters
from core.schema import ACTIVITY, ACTIVITY_TYPES

DEFAULT_SORT = SortSpec("timestamp", "desc")


def activity_stats(df: pd.DataFrame, now: pd.Timestamp) -> Dict[str, Any]:
    """Weekly counts and per-type totals over every activity, ignoring view filters."""
    this_week, last_week = count_week_windows(df["timestamp"], now) if not df.empty else (0, 0)
    by_type = group_aggregate(df, "type")
    return {
        "this_week": this_week,
        "last_week": last_week,
        "week_change": week_over_week(this_week, last_week),
        "by_type": {k: int(v["count"]) for k, v in by_type.items()},
        "total": int(len(df)),
    }


def group_by_day(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    ordered = sort_frame(df, "timestamp", "desc", schema=ACTIVITY)
    days = timestamp_series(ordered["timestamp"]).dt.strftime("%Y-%m-%d")
    groups: List[Dict[str, Any]] = []
    for day, chunk in ordered.groupby(days, sort=False):
        groups.append({"date": str(day), "activities": frame_records(chunk)})
    groups.sort(key=lambda g: g["date"], reverse=True)
    return groups


def compute_activities(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("activities", pd.DataFrame())
    now: pd.Timestamp = ctx["now"]

    view = filter_frame(
        df,
        search=filters.search,
        search_fields=("description", "contact_name", "deal_name"),
        equals={"type": "" if filters.activity_type.lower() == "all" else filters.activity_type},
        case_insensitive=True,
    )
    if not view.empty:
        view = view[time_window_mask(view["timestamp"], filters.time_window, now)]
    view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=ACTIVITY)

    stats = activity_stats(df, now)

    charts: Dict[str, Any] = {}
    if not view.empty:
        daily = (
            pd.DataFrame(
                {
                    "day": timestamp_series(view["timestamp"]).dt.strftime("%Y-%m-%d"),
                    "type": view["type"].fillna("").astype(str),
                }
            )
            .groupby(["day", "type"])
            .size()
            .reset_index(name="count")
        )
        charts["daily_trend"] = daily_trend_chart(daily)
    if stats["by_type"]:
        charts["by_type"] = category_count_chart(stats["by_type"], title="Type")

    return {
        "filters": asdict(filters),
        "kpis": {"shown": int(len(view)), **stats},
        "options": {"type": ["all", *ACTIVITY_TYPES], "time_window": list(TIME_WINDOWS)},
        "table": frame_records(view),
        "days": group_by_day(view),
        "charts": charts,
    }
