from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from core.client import HttpRecordClient
from core.config import configure_logging, load_settings
from core.data import format_currency_0
from core.gateway import RecordOperationError
from core.filters import SortSpec
from core.metrics_pipeline import move_deal
from core.metrics_tasks import complete_task
from core.pages import PAGES, get_page, run_page
from core.schema import ACTIVITY_TYPES, EntitySchema, FieldSpec, get_schema
from core.store import Workspace

configure_logging()

# lookup column -> entity whose records fill the picker
LOOKUP_TARGETS = {
    "contact_id": ("contact", "name"),
    "customer_id": ("contact", "name"),
    "company_id": ("company", "name"),
    "deal_id": ("deal", "title"),
    "activity_id": ("activity", "description"),
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .band-high {color: #059669;font-weight: 600;}
        .band-medium {color: #d97706;font-weight: 600;}
        .band-low {color: #dc2626;font-weight: 600;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container(border=True)
    container.markdown(f"<div class='card-title'>{title}</div>", unsafe_allow_html=True)
    with container:
        yield container


def format_filter_summary(raw: Dict[str, Any]) -> str:
    chips = []
    for key in ("search", "status", "priority", "industry", "tag"):
        if raw.get(key):
            chips.append(f"{key.title()}: {raw[key]}")
    if raw.get("activity_type") not in (None, "", "all"):
        chips.append(f"Type: {raw['activity_type']}")
    if raw.get("time_window") not in (None, "", "all"):
        chips.append(f"Time: {raw['time_window']}")
    sort = raw.get("sort") or {}
    if sort.get("key"):
        chips.append(f"Sort: {sort['key']} {sort.get('direction', 'desc')}")
    chips = chips or ["No filters"]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, raw: Dict[str, Any], export_rows: Optional[List[Dict[str, Any]]] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.session_state["_refresh"] = True
            st.rerun()
        export_df = pd.DataFrame(export_rows or [])
        if not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{format_filter_summary(raw)}</div>", unsafe_allow_html=True)


def flush_notifications(workspace: Workspace):
    icons = {"success": "✅", "error": "⚠️", "info": "ℹ️"}
    for note in workspace.notifier.drain():
        st.toast(note.message, icon=icons.get(note.level))


def render_load_errors(errors: Dict[str, str]) -> bool:
    """Show load failures with a reload button; True when nothing loaded."""
    if not errors:
        return False
    for entity, message in errors.items():
        st.error(f"{get_schema(entity).label}: {message}")
    if st.button("Reload", type="primary"):
        st.session_state["_refresh"] = True
        st.rerun()
    return True


def render_charts(charts: Dict[str, Any], titles: Dict[str, str]):
    keys = [k for k in titles if k in charts]
    if not keys:
        return
    cols = st.columns(len(keys))
    for col, key in zip(cols, keys):
        with col:
            with card(titles[key]):
                st.vega_lite_chart(charts[key], use_container_width=True)


def sort_controls(page_name: str, columns: List[str], default: SortSpec) -> Dict[str, str]:
    c1, c2 = st.columns([3, 1])
    key = c1.selectbox("Sort by", options=columns, index=columns.index(default.key) if default.key in columns else 0, key=f"{page_name}_sort_key")
    direction = c2.selectbox("Direction", options=["asc", "desc"], index=1 if default.direction == "desc" else 0, key=f"{page_name}_sort_dir")
    return {"key": key, "direction": direction}


# ---------- record forms ----------
def lookup_choices(workspace: Workspace, target: str, label_col: str) -> Dict[str, Optional[int]]:
    store = workspace.store(target)
    store.ensure_loaded()
    choices: Dict[str, Optional[int]] = {"(none)": None}
    for record in store.items:
        choices[f"{record.get(label_col) or 'Untitled'} (#{record['id']})"] = record["id"]
    return choices


def field_input(workspace: Workspace, schema: EntitySchema, spec: FieldSpec, current: Dict[str, Any], key_prefix: str) -> Any:
    label = spec.ui.replace("_", " ").title()
    value = current.get(spec.ui, spec.empty())
    key = f"{key_prefix}_{spec.ui}"
    options = list(schema.options.get(spec.ui, ()))
    if spec.kind == "lookup":
        if spec.ui not in LOOKUP_TARGETS:
            return st.number_input(label, min_value=0, value=int(value or 0), step=1, key=key) or None
        choices = lookup_choices(workspace, *LOOKUP_TARGETS[spec.ui])
        labels = list(choices)
        index = next((i for i, lbl in enumerate(labels) if choices[lbl] == value), 0)
        return choices[st.selectbox(label, options=labels, index=index, key=key)]
    if options:
        if value and value not in options:
            options.append(value)
        index = options.index(value) if value in options else 0
        return st.selectbox(label, options=options, index=index, key=key)
    if spec.kind == "int":
        return st.number_input(label, min_value=0, value=int(value or 0), step=1, key=key)
    if spec.kind == "float":
        return st.number_input(label, min_value=0.0, value=float(value or 0.0), step=100.0, key=key)
    if spec.kind == "date":
        parsed = pd.to_datetime(value, errors="coerce", utc=True) if value else None
        picked = st.date_input(label, value=parsed.date() if parsed is not None and not pd.isna(parsed) else None, key=key)
        return picked.isoformat() if isinstance(picked, (date, datetime)) else None
    if spec.kind == "tags":
        return st.text_input(f"{label} (comma separated)", value=", ".join(value or []), key=key)
    if spec.ui in ("notes", "description"):
        return st.text_area(label, value=value or "", key=key)
    return st.text_input(label, value=value or "", key=key)


def record_form(workspace: Workspace, entity: str, record: Optional[Dict[str, Any]] = None):
    schema = get_schema(entity)
    store = workspace.store(entity)
    editing = record is not None
    form_key = f"{entity}_{'edit_' + str(record['id']) if editing else 'new'}"
    with st.form(form_key, clear_on_submit=not editing):
        values = {}
        for spec in schema.fields:
            if spec.writable:
                values[spec.ui] = field_input(workspace, schema, spec, record or {}, form_key)
        submitted = st.form_submit_button("Save" if editing else f"Add {schema.name.replace('_', ' ')}")
    if not submitted:
        return
    if editing:
        changed = {k: v for k, v in values.items() if v != record.get(k)}
        result = store.update(record["id"], changed) if changed else None
    else:
        result = store.create(values)
    if result is not None and not result.ok:
        for field_name, message in result.field_errors.items():
            st.error(f"{field_name}: {message}")
        if not result.field_errors:
            st.error(result.message)
    flush_notifications(workspace)


def record_admin(workspace: Workspace, entity: str, rows: List[Dict[str, Any]], label_col: str = "name"):
    schema = get_schema(entity)
    tabs = st.tabs([f"New {schema.name.replace('_', ' ')}", "Edit / delete"])
    with tabs[0]:
        record_form(workspace, entity)
    with tabs[1]:
        if not rows:
            st.info(f"No {schema.label.lower()} to edit.")
            return
        labels = {f"{r.get(label_col) or 'Untitled'} (#{r['id']})": r["id"] for r in rows}
        picked = st.selectbox("Record", options=list(labels), key=f"{entity}_pick")
        record = workspace.store(entity).find(labels[picked])
        if record is None:
            return
        record_form(workspace, entity, record)
        if st.button("Delete", key=f"{entity}_delete_{record['id']}"):
            workspace.store(entity).delete(record["id"])
            flush_notifications(workspace)
            st.rerun()


# ---------- UI setup ----------
st.set_page_config(page_title="PipelineHub CRM Dashboard", layout="wide")
inject_base_styles()
st.title("PipelineHub CRM")
st.caption("Contacts, deals and pipeline at a glance.")


@st.cache_resource
def get_workspace() -> Workspace:
    settings = load_settings()
    return Workspace(HttpRecordClient.from_settings(settings), page_limit=settings.page_limit)


try:
    workspace = get_workspace()
except ValueError as exc:
    st.error(f"{exc}. Set RECORD_API_URL to the record API base URL.")
    st.stop()

with st.sidebar:
    st.markdown("### Navigate")
    page_titles = {p.title: p.name for p in PAGES.values()}
    nav_choice = st.radio("Navigate", list(page_titles), index=0)
    st.markdown("---")
    st.markdown("### Quick filters")
    search = st.text_input("Search", "")


def page_payload(name: str, raw: Dict[str, Any]) -> Dict[str, Any]:
    refresh = bool(st.session_state.pop("_refresh", False))
    with st.spinner("Loading..."):
        payload = run_page(name, raw, workspace, refresh=refresh)
    flush_notifications(workspace)
    return payload


def kpi_row(items: List[tuple]):
    cols = st.columns(len(items))
    for col, (label, value) in zip(cols, items):
        col.metric(label, value)


def render_dashboard_page():
    raw = {"search": search, "upcoming_days": 7, "recent_limit": 5}
    payload = page_payload("dashboard", raw)
    render_page_header("Dashboard", "Home / Dashboard", raw, payload.get("table"), "dashboard.csv")
    if render_load_errors(payload["errors"]):
        return
    k = payload["kpis"]
    kpi_row(
        [
            ("Pipeline Value", format_currency_0(k["pipeline_value"])),
            ("Won Value", format_currency_0(k["won_value"])),
            ("Active Deals", k["active_deals"]),
            ("Contacts", k["total_contacts"]),
        ]
    )
    render_charts(payload["charts"], {"pipeline_by_stage": "Pipeline by Stage"})
    c1, c2 = st.columns(2)
    with c1:
        with card(f"High Priority Deals ({k['high_priority_deals']})"):
            st.dataframe(pd.DataFrame(payload["high_priority"]), hide_index=True)
        with card(f"Closing Soon ({k['upcoming_deals']})"):
            st.dataframe(pd.DataFrame(payload["upcoming"]), hide_index=True)
    with c2:
        with card("Recent Activity"):
            for act in payload["recent_activities"]:
                who = act.get("contact_name") or "Unknown contact"
                st.markdown(f"**{act.get('type') or 'Activity'}** · {who} · {act.get('timestamp') or ''}  \n{act.get('description') or ''}")


def render_contacts_page():
    page = get_page("contacts")
    opts_col, sort_col = st.columns([1, 2])
    tag = opts_col.text_input("Tag", "", key="contacts_tag")
    with sort_col:
        sort = sort_controls("contacts", ["updated_at", "created_at", "name", "email", "company", "value"], page.default_sort)
    raw = {"search": search, "tag": tag, "sort": sort}
    payload = page_payload("contacts", raw)
    render_page_header("Contacts", "Home / Contacts", raw, payload["table"], "contacts.csv")
    if render_load_errors(payload["errors"]):
        return
    if payload["options"]["tags"]:
        st.caption("Tags: " + ", ".join(payload["options"]["tags"]))
    st.caption(payload["summary"])
    with card("Contacts"):
        st.dataframe(pd.DataFrame(payload["table"]), hide_index=True)
    with card("Manage contacts"):
        record_admin(workspace, "contact", payload["table"])


def render_companies_page():
    page = get_page("companies")
    c1, c2 = st.columns([1, 2])
    industry = c1.selectbox("Industry", ["", *get_schema("company").options["industry"]], key="companies_industry")
    with c2:
        sort = sort_controls("companies", ["updated_at", "name", "industry", "city", "number_of_employees", "annual_revenue"], page.default_sort)
    raw = {"search": search, "industry": industry, "sort": sort}
    payload = page_payload("companies", raw)
    render_page_header("Companies", "Home / Companies", raw, payload["table"], "companies.csv")
    if render_load_errors(payload["errors"]):
        return
    k = payload["kpis"]
    kpi_row([("Companies", k["shown"]), ("Industries", k["industries"]), ("With Revenue", k["with_revenue"])])
    render_charts(payload["charts"], {"industry_breakdown": "By Industry"})
    with card("Companies"):
        st.dataframe(pd.DataFrame(payload["table"]), hide_index=True)
    with card("Manage companies"):
        record_admin(workspace, "company", payload["table"])


def render_pipeline_page():
    raw = {"search": search}
    payload = page_payload("pipeline", raw)
    render_page_header("Pipeline", "Home / Pipeline", raw, payload["table"], "pipeline.csv")
    if render_load_errors(payload["errors"]):
        return
    k = payload["kpis"]
    kpi_row([("Pipeline Value", format_currency_0(k["pipeline_value"])), ("Active Deals", k["active_deals"]), ("Deals", k["total_deals"])])
    columns = payload["columns"]
    stage_names = [c["name"] for c in columns]
    cols = st.columns(max(1, len(columns)))
    for col, stage in zip(cols, columns):
        with col:
            st.markdown(f"**{stage['name']}** ({stage['count']})  \n{format_currency_0(stage['value'])}")
            for deal in stage["deals"]:
                with st.container(border=True):
                    band = deal.get("probability_band", "low")
                    st.markdown(
                        f"{deal.get('title') or 'Untitled'}  \n{format_currency_0(deal.get('value'))} · "
                        f"<span class='band-{band}'>{deal.get('probability') or 0}%</span>",
                        unsafe_allow_html=True,
                    )
                    target = st.selectbox("Move to", stage_names, index=stage_names.index(stage["name"]), key=f"move_{deal['id']}", label_visibility="collapsed")
                    if target != stage["name"]:
                        move_deal(workspace.store("deal"), deal["id"], target)
                        flush_notifications(workspace)
                        st.rerun()
    render_charts(payload["charts"], {"stage_value": "Value by Stage"})
    with card("Manage deals"):
        record_admin(workspace, "deal", payload["table"], label_col="title")


def render_activities_page():
    c1, c2 = st.columns(2)
    activity_type = c1.selectbox("Type", ["all", *ACTIVITY_TYPES], key="activities_type")
    time_window = c2.selectbox("Time", ["all", "today", "week", "month"], key="activities_time")
    raw = {"search": search, "activity_type": activity_type, "time_window": time_window}
    payload = page_payload("activities", raw)
    render_page_header("Activities", "Home / Activities", raw, payload["table"], "activities.csv")
    if render_load_errors(payload["errors"]):
        return
    k = payload["kpis"]
    kpi_row(
        [
            ("This Week", k["this_week"]),
            ("Last Week", k["last_week"]),
            ("Change", f"{k['week_change']:+d}%"),
            ("Total", k["total"]),
        ]
    )
    render_charts(payload["charts"], {"daily_trend": "Daily Activity", "by_type": "By Type"})
    with card("Timeline"):
        if not payload["days"]:
            st.info("No activities match your filters.")
        for day in payload["days"]:
            st.markdown(f"#### {day['date']}")
            for act in day["activities"]:
                st.markdown(f"- **{act.get('type')}** {act.get('description') or ''} ({act.get('contact_name') or 'no contact'})")
    with card("Log activity"):
        record_form(workspace, "activity")


def render_quotes_page():
    page = get_page("quotes")
    c1, c2 = st.columns([1, 2])
    status = c1.selectbox("Status", ["", *get_schema("quote").options["status"]], key="quotes_status")
    with c2:
        sort = sort_controls("quotes", ["created_at", "title", "quote_date", "expires_on", "total_amount", "discount", "company_id", "contact_id", "deal_id"], page.default_sort)
    raw = {"search": search, "status": status, "sort": sort}
    payload = page_payload("quotes", raw)
    render_page_header("Quotes", "Home / Quotes", raw, payload["table"], "quotes.csv")
    if render_load_errors(payload["errors"]):
        return
    k = payload["kpis"]
    kpi_row([("Quotes", k["shown"]), ("Total Amount", format_currency_0(k["total_amount"])), ("Accepted", format_currency_0(k["accepted_amount"]))])
    with card("Quotes"):
        st.dataframe(pd.DataFrame(payload["table"]), hide_index=True)
    with card("Manage quotes"):
        record_admin(workspace, "quote", payload["table"], label_col="title")


def render_sales_orders_page():
    page = get_page("sales-orders")
    c1, c2 = st.columns([1, 2])
    statuses = st.session_state.get("_sales_order_statuses", [])
    status = c1.selectbox("Status", ["", *statuses], key="sales_orders_status")
    with c2:
        sort = sort_controls("sales_orders", ["updated_at", "name", "order_date", "customer_id", "total_amount", "status"], page.default_sort)
    raw = {"search": search, "status": status, "sort": sort}
    payload = page_payload("sales-orders", raw)
    st.session_state["_sales_order_statuses"] = payload["options"]["status"]
    render_page_header("Sales Orders", "Home / Sales Orders", raw, payload["table"], "sales-orders.csv")
    if render_load_errors(payload["errors"]):
        return
    st.caption(payload["summary"])
    with card("Sales Orders"):
        st.dataframe(pd.DataFrame(payload["table"]), hide_index=True)
    with card("Manage sales orders"):
        record_admin(workspace, "sales_order", payload["table"])


def render_tasks_page():
    c1, c2 = st.columns(2)
    task_schema = get_schema("task")
    status = c1.selectbox("Status", ["", *task_schema.options["status"]], key="tasks_status")
    priority = c2.selectbox("Priority", ["", *task_schema.options["priority"]], key="tasks_priority")
    raw = {"search": search, "status": status, "priority": priority}
    payload = page_payload("tasks", raw)
    render_page_header("Tasks", "Home / Tasks", raw, payload["table"], "tasks.csv")
    if render_load_errors(payload["errors"]):
        return
    k = payload["kpis"]
    kpi_row([("Tasks", k["shown"]), ("Completed", k["completed"]), ("Overdue", k["overdue"])])
    render_charts(payload["charts"], {"by_status": "By Status"})
    with card(f"Tasks ({k['shown']})"):
        if not payload["table"]:
            st.info("No tasks match your filters" if search or status or priority else "No tasks yet")
        else:
            st.dataframe(pd.DataFrame(payload["table"]), hide_index=True)
            open_tasks = {f"{t.get('name') or 'Untitled'} (#{t['id']})": t["id"] for t in payload["table"] if t.get("status") != "Completed"}
            if open_tasks:
                c1, c2 = st.columns([3, 1])
                picked = c1.selectbox("Open task", options=list(open_tasks), key="tasks_complete_pick")
                if c2.button("Mark complete", key="tasks_complete"):
                    try:
                        complete_task(workspace.store("task"), open_tasks[picked])
                    except RecordOperationError as exc:
                        st.error(str(exc))
                    flush_notifications(workspace)
    with card("Manage tasks"):
        record_admin(workspace, "task", payload["table"])


RENDERERS = {
    "dashboard": render_dashboard_page,
    "contacts": render_contacts_page,
    "companies": render_companies_page,
    "pipeline": render_pipeline_page,
    "activities": render_activities_page,
    "quotes": render_quotes_page,
    "sales-orders": render_sales_orders_page,
    "tasks": render_tasks_page,
}

RENDERERS[page_titles[nav_choice]]()
flush_notifications(workspace)
