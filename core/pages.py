"""Page registry shared by the HTTP service and the Streamlit app."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple

import pandas as pd

from core import (
    metrics_activities,
    metrics_companies,
    metrics_contacts,
    metrics_dashboard,
    metrics_pipeline,
    metrics_quotes,
    metrics_sales_orders,
    metrics_tasks,
)
from core.data import load_dashboard_data, prepare_context
from core.filters import SortSpec, ViewFilters, normalize_filters

if TYPE_CHECKING:
    from core.store import Workspace

ComputeFn = Callable[[ViewFilters, Dict[str, Any]], Dict[str, Any]]


@dataclass(frozen=True)
class Page:
    name: str
    title: str
    compute: ComputeFn
    entities: Tuple[str, ...]
    default_sort: SortSpec = SortSpec()
    table_entity: Optional[str] = None


PAGES: Dict[str, Page] = {
    p.name: p
    for p in (
        Page(
            "dashboard",
            "Dashboard",
            metrics_dashboard.compute_dashboard,
            ("contact", "deal", "activity"),
            SortSpec("timestamp", "desc"),
            "deal",
        ),
        Page(
            "contacts",
            "Contacts",
            metrics_contacts.compute_contacts,
            ("contact", "deal"),
            metrics_contacts.DEFAULT_SORT,
            "contact",
        ),
        Page(
            "companies",
            "Companies",
            metrics_companies.compute_companies,
            ("company",),
            metrics_companies.DEFAULT_SORT,
            "company",
        ),
        Page(
            "pipeline",
            "Pipeline",
            metrics_pipeline.compute_pipeline,
            ("contact", "deal", "pipeline_stage"),
            metrics_pipeline.DEFAULT_SORT,
            "deal",
        ),
        Page(
            "activities",
            "Activities",
            metrics_activities.compute_activities,
            ("contact", "deal", "activity"),
            metrics_activities.DEFAULT_SORT,
            "activity",
        ),
        Page(
            "quotes",
            "Quotes",
            metrics_quotes.compute_quotes,
            ("company", "contact", "deal", "quote"),
            metrics_quotes.DEFAULT_SORT,
            "quote",
        ),
        Page(
            "sales-orders",
            "Sales Orders",
            metrics_sales_orders.compute_sales_orders,
            ("contact", "sales_order"),
            metrics_sales_orders.DEFAULT_SORT,
            "sales_order",
        ),
        Page(
            "tasks",
            "Tasks",
            metrics_tasks.compute_tasks,
            ("deal", "activity", "task"),
            metrics_tasks.DEFAULT_SORT,
            "task",
        ),
    )
}


def get_page(name: str) -> Page:
    key = name.strip().lower().replace("_", "-")
    if key not in PAGES:
        raise KeyError(f"Unknown page: {name}")
    return PAGES[key]


def run_page(
    name: str,
    raw_filters: Optional[Mapping[str, Any]],
    workspace: "Workspace",
    *,
    refresh: bool = False,
    now: Optional[Any] = None,
) -> Dict[str, Any]:
    """Load the page's entities, derive its context and compute its payload."""
    page = get_page(name)
    data_ctx = load_dashboard_data(workspace, page.entities, refresh=refresh)
    filters = normalize_filters(raw_filters, default_sort=page.default_sort)
    ctx = prepare_context(data_ctx, now=now)
    payload = page.compute(filters, ctx)
    payload["page"] = page.name
    payload["errors"] = ctx["errors"]
    return payload


def export_frame(
    name: str,
    raw_filters: Optional[Mapping[str, Any]],
    workspace: "Workspace",
    *,
    now: Optional[Any] = None,
) -> pd.DataFrame:
    """The page's filtered and sorted table as a DataFrame, for CSV download."""
    payload = run_page(name, raw_filters, workspace, now=now)
    return pd.DataFrame(payload.get("table") or [])
