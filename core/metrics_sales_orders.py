from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.data import filter_frame, frame_records, numeric_series, sort_frame, unique_values
from core.filters import SortSpec, ViewFilters
from core.schema import SALES_ORDER

DEFAULT_SORT = SortSpec("updated_at", "desc")
SEARCH_FIELDS = ("name", "customer_name", "tags")


def compute_sales_orders(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("sales_orders", pd.DataFrame())
    total = int(len(df))

    view = filter_frame(df, search=filters.search, search_fields=SEARCH_FIELDS, equals={"status": filters.status})
    view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=SALES_ORDER)

    return {
        "filters": asdict(filters),
        "kpis": {
            "total": total,
            "shown": int(len(view)),
            "total_amount": float(numeric_series(view["total_amount"]).sum()) if not view.empty else 0.0,
        },
        "summary": f"{len(view)} of {total} orders",
        # statuses come from the loaded orders, not a fixed list
        "options": {"status": unique_values(df, "status")},
        "table": frame_records(view),
        "charts": {},
    }
