from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.charts import category_count_chart
from core.data import filter_frame, frame_records, group_aggregate, numeric_series, sort_frame, unique_values
from core.filters import SortSpec, ViewFilters
from core.schema import COMPANY, INDUSTRY_OPTIONS

DEFAULT_SORT = SortSpec("updated_at", "desc")
SEARCH_FIELDS = ("name", "industry", "city", "tags")


def compute_companies(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("companies", pd.DataFrame())

    view = filter_frame(
        df,
        search=filters.search,
        search_fields=SEARCH_FIELDS,
        equals={"industry": filters.industry},
        tag=filters.tag,
    )
    view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=COMPANY)

    industries = group_aggregate(df, "industry")
    industries.pop("", None)
    with_revenue = int((numeric_series(df["annual_revenue"]) > 0).sum()) if not df.empty else 0

    charts: Dict[str, Any] = {}
    if industries:
        charts["industry_breakdown"] = category_count_chart(
            {k: int(v["count"]) for k, v in industries.items()}, title="Industry"
        )

    return {
        "filters": asdict(filters),
        "kpis": {
            "total": int(len(df)),
            "shown": int(len(view)),
            "industries": len(industries),
            "with_revenue": with_revenue,
        },
        "options": {"industry": list(INDUSTRY_OPTIONS), "tags": unique_values(df, "tags")},
        "table": frame_records(view),
        "charts": charts,
    }
