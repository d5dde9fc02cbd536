from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from fastapi import Body, Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import EntityMeta, StageMoveModel, ViewFiltersModel
from core.client import HttpRecordClient
from core.config import configure_logging, cors_origins, load_settings
from core.data import unique_values
from core.gateway import Result
from core.metrics_pipeline import move_deal
from core.pages import export_frame, get_page, run_page
from core.schema import ENTITIES, get_schema
from core.store import Workspace

configure_logging()

app = FastAPI(title="PipelineHub Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_KIND = {"validation": 422, "not_found": 404, "backend": 502, "transport": 502}


@lru_cache(maxsize=1)
def _default_workspace() -> Workspace:
    settings = load_settings()
    return Workspace(HttpRecordClient.from_settings(settings), page_limit=settings.page_limit)


def get_workspace() -> Workspace:
    return _default_workspace()


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _unknown(exc: KeyError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc.args[0]) if exc.args else "Not found", "type": "KeyError"})


def _result_response(result: Result[Any], workspace: Workspace, *, created: bool = False) -> JSONResponse:
    status = (201 if created else 200) if result.ok else _STATUS_BY_KIND.get(result.kind, 500)
    return _json(
        {
            "ok": result.ok,
            "kind": result.kind,
            "value": result.value,
            "errors": list(result.errors),
            "field_errors": result.field_errors,
            "notifications": [{"level": n.level, "message": n.message} for n in workspace.notifier.drain()],
        },
        status_code=status,
    )


# ---------- meta ----------

@app.get("/meta/entities")
def meta_entities():
    entities = [
        EntityMeta(
            name=s.name,
            label=s.label,
            columns=s.columns,
            search_field=s.search_field,
            options={k: list(v) for k, v in s.options.items()},
        ).model_dump()
        for s in ENTITIES.values()
    ]
    return _json({"entities": entities})


@app.get("/meta/options/{entity}")
def meta_options(entity: str, workspace: Workspace = Depends(get_workspace)):
    try:
        schema = get_schema(entity)
    except KeyError as exc:
        return _unknown(exc)
    try:
        options: Dict[str, Any] = {k: list(v) for k, v in schema.options.items()}
        store = workspace.store(schema.name)
        store.ensure_loaded()
        frame = store.frame()
        if schema.get_field("tags"):
            options["tags"] = unique_values(frame, "tags")
        if schema.get_field("status") and "status" not in options:
            options["status"] = unique_values(frame, "status")
        return _json({"entity": schema.name, "options": options})
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


# ---------- views ----------

def _run_view(page: str, filters: ViewFiltersModel, workspace: Workspace) -> JSONResponse:
    try:
        raw = filters.model_dump()
        refresh = bool(raw.pop("refresh", False))
        return _json(run_page(page, raw, workspace, refresh=refresh))
    except Exception as exc:
        logger.exception("%s view failed", page)
        return _error(exc)


@app.post("/views/dashboard")
def view_dashboard(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("dashboard", filters, workspace)


@app.post("/views/contacts")
def view_contacts(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("contacts", filters, workspace)


@app.post("/views/companies")
def view_companies(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("companies", filters, workspace)


@app.post("/views/pipeline")
def view_pipeline(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("pipeline", filters, workspace)


@app.post("/views/activities")
def view_activities(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("activities", filters, workspace)


@app.post("/views/quotes")
def view_quotes(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("quotes", filters, workspace)


@app.post("/views/sales-orders")
def view_sales_orders(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("sales-orders", filters, workspace)


@app.post("/views/tasks")
def view_tasks(filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    return _run_view("tasks", filters, workspace)


# ---------- records ----------

@app.get("/records/{entity}")
def list_records(
    entity: str,
    search: str = Query(default=""),
    status: str = Query(default=""),
    workspace: Workspace = Depends(get_workspace),
):
    try:
        store = workspace.store(entity)
    except KeyError as exc:
        return _unknown(exc)
    try:
        filters = {k: v for k, v in {"search": search, "status": status}.items() if v}
        if filters:
            # filtered queries go to the record API and leave the cached list alone
            result = store.gateway.list(filters)
        else:
            items = store.load()
            result = Result.failure("backend", [store.error], value=items) if store.error else Result.success(items)
        return _result_response(result, workspace)
    except Exception as exc:
        logger.exception("list_records failed")
        return _error(exc)


@app.get("/records/{entity}/{record_id}")
def get_record(entity: str, record_id: int, workspace: Workspace = Depends(get_workspace)):
    try:
        store = workspace.store(entity)
    except KeyError as exc:
        return _unknown(exc)
    try:
        return _result_response(store.gateway.get_by_id(record_id), workspace)
    except Exception as exc:
        logger.exception("get_record failed")
        return _error(exc)


@app.post("/records/{entity}")
def create_record(entity: str, fields: Dict[str, Any] = Body(...), workspace: Workspace = Depends(get_workspace)):
    try:
        store = workspace.store(entity)
    except KeyError as exc:
        return _unknown(exc)
    try:
        return _result_response(store.create(fields), workspace, created=True)
    except Exception as exc:
        logger.exception("create_record failed")
        return _error(exc)


@app.patch("/records/{entity}/{record_id}")
def update_record(
    entity: str,
    record_id: int,
    fields: Dict[str, Any] = Body(...),
    workspace: Workspace = Depends(get_workspace),
):
    try:
        store = workspace.store(entity)
    except KeyError as exc:
        return _unknown(exc)
    try:
        return _result_response(store.update(record_id, fields), workspace)
    except Exception as exc:
        logger.exception("update_record failed")
        return _error(exc)


@app.delete("/records/{entity}/{record_id}")
def delete_record(entity: str, record_id: int, workspace: Workspace = Depends(get_workspace)):
    try:
        store = workspace.store(entity)
    except KeyError as exc:
        return _unknown(exc)
    try:
        return _result_response(store.delete(record_id), workspace)
    except Exception as exc:
        logger.exception("delete_record failed")
        return _error(exc)


@app.post("/deals/{deal_id}/stage")
def move_deal_stage(deal_id: int, body: StageMoveModel, workspace: Workspace = Depends(get_workspace)):
    try:
        store = workspace.store("deal")
        store.ensure_loaded()
        return _result_response(move_deal(store, deal_id, body.stage), workspace)
    except Exception as exc:
        logger.exception("move_deal_stage failed")
        return _error(exc)


@app.get("/notifications")
def notifications(workspace: Workspace = Depends(get_workspace)):
    items = workspace.notifier.drain()
    return _json({"notifications": [{"level": n.level, "message": n.message} for n in items]})


@app.post("/export/{page}")
def export_page(page: str, filters: ViewFiltersModel, workspace: Workspace = Depends(get_workspace)):
    try:
        name = get_page(page).name
    except KeyError as exc:
        return _unknown(exc)
    try:
        raw = filters.model_dump()
        raw.pop("refresh", None)
        export_df: Optional[pd.DataFrame] = export_frame(name, raw, workspace)
        if export_df is None or not hasattr(export_df, "to_csv"):
            export_df = pd.DataFrame()
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    except Exception as exc:
        logger.exception("export %s failed", name)
        return _error(exc)
    filename = f"{name}.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
