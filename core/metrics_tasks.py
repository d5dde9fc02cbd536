from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Dict, Optional

import pandas as pd

from core.charts import category_count_chart
from core.data import filter_frame, frame_records, group_aggregate, sort_frame, timestamp_series
from core.filters import SortSpec, ViewFilters
from core.schema import PRIORITY_OPTIONS, TASK, TASK_STATUSES

if TYPE_CHECKING:
    from core.store import RecordStore

DEFAULT_SORT = SortSpec("updated_at", "desc")
SEARCH_FIELDS = ("name", "title", "description")


def overdue_mask(df: pd.DataFrame, now: pd.Timestamp) -> pd.Series:
    """Tasks past their due date that are not completed."""
    if df.empty:
        return pd.Series(False, index=df.index)
    due = timestamp_series(df["due_date"], fill=None)
    return ((due < now.normalize()) & (df["status"] != "Completed")).fillna(False)


def complete_task(store: "RecordStore", task_id: int) -> Optional[Dict[str, Any]]:
    """Mark a task Completed. Raises ``RecordOperationError`` when the write fails."""
    return store.update(task_id, {"status": "Completed"}).unwrap()


def compute_tasks(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("tasks", pd.DataFrame())
    now: pd.Timestamp = ctx["now"]

    view = filter_frame(
        df,
        search=filters.search,
        search_fields=SEARCH_FIELDS,
        equals={"status": filters.status, "priority": filters.priority},
    )
    view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=TASK)
    if not view.empty:
        view["overdue"] = overdue_mask(view, now)

    by_status = {k: int(v["count"]) for k, v in group_aggregate(df, "status").items()}
    charts: Dict[str, Any] = {}
    if by_status:
        charts["by_status"] = category_count_chart(by_status, title="Status")

    return {
        "filters": asdict(filters),
        "kpis": {
            "total": int(len(df)),
            "shown": int(len(view)),
            "completed": by_status.get("Completed", 0),
            "overdue": int(overdue_mask(df, now).sum()),
        },
        "by_status": by_status,
        "options": {"status": list(TASK_STATUSES), "priority": list(PRIORITY_OPTIONS)},
        "table": frame_records(view),
        "charts": charts,
    }
