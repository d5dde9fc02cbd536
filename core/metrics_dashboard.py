from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.charts import stage_value_chart
from core.data import frame_records, group_aggregate, numeric_series, sort_frame, timestamp_series
from core.filters import ViewFilters
from core.schema import ACTIVITY, CLOSED_STAGES, DEFAULT_STAGES

_DEAL_COLUMNS = ["id", "title", "value", "stage", "probability", "priority", "expected_close_date", "contact_id", "contact_name"]
_ACTIVITY_COLUMNS = ["id", "type", "description", "timestamp", "contact_id", "contact_name", "deal_id", "deal_name"]


def open_deals(deals: pd.DataFrame) -> pd.DataFrame:
    """Deals that are neither won nor lost."""
    if deals.empty:
        return deals.copy()
    return deals[~deals["stage"].isin(CLOSED_STAGES)].copy()


def upcoming_deals(deals: pd.DataFrame, now: pd.Timestamp, days: int = 7) -> pd.DataFrame:
    """Open deals whose expected close date is between today and ``days`` whole days ahead."""
    opened = open_deals(deals)
    if opened.empty:
        return opened
    close = timestamp_series(opened["expected_close_date"], fill=None)
    delta = (close - now).dt.total_seconds() / 86400.0
    # whole-day difference truncated toward zero
    mask = (delta > -1) & (delta < days + 1)
    out = opened[mask.fillna(False)]
    return sort_frame(out, "expected_close_date", "asc", kind="date")


def compute_dashboard(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    deals: pd.DataFrame = ctx.get("deals", pd.DataFrame())
    contacts: pd.DataFrame = ctx.get("contacts", pd.DataFrame())
    activities: pd.DataFrame = ctx.get("activities", pd.DataFrame())
    now: pd.Timestamp = ctx["now"]

    active = open_deals(deals)
    values = numeric_series(deals["value"]) if not deals.empty else pd.Series(dtype=float)
    won_value = float(values[deals["stage"] == "Won"].sum()) if not deals.empty else 0.0
    pipeline_value = float(numeric_series(active["value"]).sum()) if not active.empty else 0.0
    high_priority = active[active["priority"] == "High"] if not active.empty else active
    upcoming = upcoming_deals(deals, now, filters.upcoming_days)

    recent = sort_frame(activities, "timestamp", "desc", schema=ACTIVITY).head(filters.recent_limit)

    by_stage = group_aggregate(deals, "stage", "value")
    stage_rows = [
        {"stage": s, "count": int(by_stage.get(s, {}).get("count", 0)), "value": float(by_stage.get(s, {}).get("sum", 0.0))}
        for s in DEFAULT_STAGES
    ]
    stage_rows += [
        {"stage": s, "count": int(v["count"]), "value": float(v.get("sum", 0.0))}
        for s, v in by_stage.items()
        if s not in DEFAULT_STAGES
    ]

    charts: Dict[str, Any] = {}
    if not deals.empty:
        charts["pipeline_by_stage"] = stage_value_chart(stage_rows)

    return {
        "filters": asdict(filters),
        "kpis": {
            "pipeline_value": pipeline_value,
            "won_value": won_value,
            "active_deals": int(len(active)),
            "total_contacts": int(len(contacts)),
            "high_priority_deals": int(len(high_priority)),
            "upcoming_deals": int(len(upcoming)),
        },
        "stages": stage_rows,
        "high_priority": frame_records(high_priority.reindex(columns=_DEAL_COLUMNS)),
        "upcoming": frame_records(upcoming.reindex(columns=_DEAL_COLUMNS)),
        "recent_activities": frame_records(recent.reindex(columns=_ACTIVITY_COLUMNS)),
        "table": frame_records(sort_frame(active, "expected_close_date", "asc", kind="date")),
        "errors": ctx.get("errors", {}),
        "charts": charts,
    }
