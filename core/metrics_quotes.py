from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.data import filter_frame, frame_records, group_aggregate, numeric_series, sort_frame
from core.filters import SortSpec, ViewFilters
from core.schema import QUOTE, QUOTE_STATUSES

DEFAULT_SORT = SortSpec("created_at", "desc")


def compute_quotes(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("quotes", pd.DataFrame())

    # same predicate the record API applies for a title/status query
    view = filter_frame(df, search=filters.search, search_fields=("title",), equals={"status": filters.status})
    view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=QUOTE)

    amounts = numeric_series(view["total_amount"]) if not view.empty else pd.Series(dtype=float)
    by_status = group_aggregate(view, "status", "total_amount")

    return {
        "filters": asdict(filters),
        "kpis": {
            "total": int(len(df)),
            "shown": int(len(view)),
            "total_amount": float(amounts.sum()),
            "accepted_amount": float(by_status.get("Accepted", {}).get("sum", 0.0)),
        },
        "by_status": by_status,
        "options": {"status": list(QUOTE_STATUSES), "delivery_method": list(QUOTE.options.get("delivery_method", ()))},
        "table": frame_records(view),
        "charts": {},
    }
