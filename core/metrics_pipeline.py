"""Kanban view of deals by pipeline stage, plus the stage-move operation."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Dict, List

import pandas as pd

from core.charts import stage_value_chart
from core.data import filter_frame, frame_records, group_aggregate, numeric_series, sort_frame
from core.filters import SortSpec, ViewFilters
from core.gateway import Result
from core.schema import CLOSED_STAGES, DEAL, DEFAULT_STAGES, PIPELINE_STAGE

if TYPE_CHECKING:
    from core.store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_SORT = SortSpec("updated_at", "desc")


def probability_band(probability: Any) -> str:
    try:
        p = float(probability)
    except (TypeError, ValueError):
        p = 0.0
    if p >= 80:
        return "high"
    if p >= 50:
        return "medium"
    return "low"


def stage_list(stages: pd.DataFrame) -> List[Dict[str, Any]]:
    """Configured stages ordered by ``order``; the built-in list when none are configured."""
    if stages.empty:
        return [{"name": name, "order": i + 1, "color": None} for i, name in enumerate(DEFAULT_STAGES)]
    ordered = sort_frame(stages, "order", "asc", schema=PIPELINE_STAGE)
    out = []
    for row in ordered.itertuples(index=False):
        name = str(row.name or "").strip()
        if name:
            out.append({"name": name, "order": int(row.order or 0), "color": row.color or None})
    return out


def compute_pipeline(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    deals: pd.DataFrame = ctx.get("deals", pd.DataFrame())
    stages = stage_list(ctx.get("pipeline_stages", pd.DataFrame()))

    view = filter_frame(
        deals,
        search=filters.search,
        search_fields=("title", "contact_name"),
        equals={"priority": filters.priority},
    )
    view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=DEAL)
    if not view.empty:
        view["probability_band"] = view["probability"].map(probability_band)

    totals = group_aggregate(view, "stage", "value")
    columns = []
    for stage in stages:
        chunk = view[view["stage"] == stage["name"]] if not view.empty else view
        agg = totals.get(stage["name"], {})
        columns.append(
            {
                **stage,
                "count": int(agg.get("count", 0)),
                "value": float(agg.get("sum", 0.0)),
                "deals": frame_records(chunk),
            }
        )

    opened = view[~view["stage"].isin(CLOSED_STAGES)] if not view.empty else view
    pipeline_value = float(numeric_series(opened["value"]).sum()) if not opened.empty else 0.0

    charts: Dict[str, Any] = {}
    if columns:
        colors = [c["color"] for c in columns]
        charts["stage_value"] = stage_value_chart(
            [{"stage": c["name"], "count": c["count"], "value": c["value"]} for c in columns],
            colors=colors if all(colors) else None,
        )

    return {
        "filters": asdict(filters),
        "kpis": {
            "pipeline_value": pipeline_value,
            "active_deals": int(len(opened)),
            "total_deals": int(len(view)),
        },
        "columns": columns,
        "table": frame_records(view),
        "options": {"stage": [s["name"] for s in stages], "priority": list(DEAL.options.get("priority", ()))},
        "charts": charts,
    }


def move_deal(store: "RecordStore", deal_id: int, stage: str) -> Result[Dict[str, Any]]:
    """Drop a deal onto another stage column."""
    stage = (stage or "").strip()
    if not stage:
        return Result.failure("validation", ["Stage is required"], field_errors={"stage": "Stage is required"})
    current = store.find(deal_id)
    if current is not None and current.get("stage") == stage:
        return Result.success(current)
    logger.info("Moving deal %s to %s", deal_id, stage)
    return store.update(deal_id, {"stage": stage})
