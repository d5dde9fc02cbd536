from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.data import filter_frame, frame_records, sort_frame, unique_values
from core.filters import SortSpec, ViewFilters
from core.schema import CONTACT

DEFAULT_SORT = SortSpec("updated_at", "desc")
SEARCH_FIELDS = ("name", "email", "company")


def compute_contacts(filters: ViewFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("contacts", pd.DataFrame())
    total = int(len(df))

    view = filter_frame(df, search=filters.search, search_fields=SEARCH_FIELDS, tag=filters.tag)
    if filters.sort.key == "value":
        # deal value is derived, not a stored contact field
        view = sort_frame(view, "deal_value", filters.sort.direction, kind="numeric")
    else:
        view = sort_frame(view, filters.sort.key, filters.sort.direction, schema=CONTACT)

    return {
        "filters": asdict(filters),
        "kpis": {"total": total, "shown": int(len(view))},
        "summary": f"Showing {len(view)} of {total} contacts",
        "options": {"tags": unique_values(df, "tags")},
        "table": frame_records(view),
        "charts": {},
    }
