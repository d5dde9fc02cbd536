"""Entity field tables and the UI <-> backend record mapping.

Every entity the dashboard shows is described by one ``EntitySchema``. The
backend uses its own field names (``title_c``, ``Tags``, ``ModifiedOn`` ...);
the rest of the codebase only ever sees the UI names defined here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

FieldKind = Literal["str", "int", "float", "date", "tags", "lookup"]
SortKind = Literal["numeric", "date", "string"]


@dataclass(frozen=True)
class FieldSpec:
    ui: str
    backend: str
    kind: FieldKind = "str"
    writable: bool = True
    default: Any = None
    detail: bool = False

    @property
    def display_column(self) -> Optional[str]:
        """Read-only column holding a lookup's display name (``contact_id`` -> ``contact_name``)."""
        if self.kind != "lookup":
            return None
        base = self.ui[: -len("_id")] if self.ui.endswith("_id") else self.ui
        return f"{base}_name"

    def empty(self) -> Any:
        if self.kind == "tags":
            return list(self.default or [])
        if self.default is not None:
            return self.default
        if self.kind == "str":
            return ""
        if self.kind == "int":
            return 0
        if self.kind == "float":
            return 0.0
        return None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class EntitySchema:
    name: str
    table: str
    label: str
    fields: Tuple[FieldSpec, ...]
    search_field: str = "name"
    order_by: str = "ModifiedOn"
    order_desc: bool = True
    page_limit: int = 100
    create_defaults: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def get_field(self, ui: str) -> Optional[FieldSpec]:
        for f in self.fields:
            if f.ui == ui:
                return f
        return None

    def backend_name(self, ui: str) -> str:
        spec = self.get_field(ui)
        if spec is None:
            raise KeyError(f"{self.name} has no field {ui!r}")
        return spec.backend

    @property
    def columns(self) -> List[str]:
        cols: List[str] = []
        for f in self.fields:
            cols.append(f.ui)
            if f.display_column:
                cols.append(f.display_column)
        return cols

    def read_fields(self, *, detail: bool = False) -> List[str]:
        return [f.backend for f in self.fields if detail or not f.detail]

    def sort_kind(self, ui: str) -> SortKind:
        spec = self.get_field(ui)
        if spec is None or spec.kind in ("str", "tags", "lookup"):
            return "string"
        if spec.kind in ("int", "float"):
            return "numeric"
        return "date"

    def sort_column(self, ui: str) -> str:
        """Lookup columns sort by their display name, everything else by itself."""
        spec = self.get_field(ui)
        if spec is not None and spec.display_column:
            return spec.display_column
        return ui


def _system_fields() -> Tuple[FieldSpec, ...]:
    return (
        FieldSpec("created_at", "CreatedOn", "date", writable=False),
        FieldSpec("updated_at", "ModifiedOn", "date", writable=False),
    )


ID_FIELD = FieldSpec("id", "Id", "int", writable=False)

INDUSTRY_OPTIONS = ("Manufacturing", "Technology", "Finance", "Healthcare", "Education", "Retail", "Other")
PRIORITY_OPTIONS = ("High", "Medium", "Low")
DEFAULT_STAGES = ("Lead", "Qualified", "Proposal", "Negotiation", "Won", "Lost")
CLOSED_STAGES = ("Won", "Lost")
ACTIVITY_TYPES = ("Call", "Email", "Meeting", "Note", "Task", "Follow-up")
QUOTE_STATUSES = ("Draft", "Sent", "Accepted", "Rejected", "Expired")
DELIVERY_METHODS = ("Email", "Post", "Courier", "In Person")
SALES_ORDER_STATUSES = ("Draft", "Open", "Closed", "Cancelled")
TASK_STATUSES = ("Open", "InProgress", "Completed", "Blocked")


CONTACT = EntitySchema(
    name="contact",
    table="contact_c",
    label="Contacts",
    fields=(
        ID_FIELD,
        FieldSpec("name", "Name"),
        FieldSpec("email", "email_c"),
        FieldSpec("phone", "phone_c"),
        FieldSpec("company", "company_c"),
        FieldSpec("tags", "Tags", "tags"),
        FieldSpec("notes", "notes_c", detail=True),
        *_system_fields(),
    ),
)

COMPANY = EntitySchema(
    name="company",
    table="company_c",
    label="Companies",
    fields=(
        ID_FIELD,
        FieldSpec("name", "Name"),
        FieldSpec("tags", "Tags", "tags"),
        FieldSpec("industry", "industry_c"),
        FieldSpec("address", "address_c"),
        FieldSpec("city", "city_c"),
        FieldSpec("state", "state_c"),
        FieldSpec("zip_code", "zip_code_c"),
        FieldSpec("phone", "phone_c"),
        FieldSpec("website", "website_c"),
        FieldSpec("number_of_employees", "number_of_employees_c", "int"),
        FieldSpec("annual_revenue", "annual_revenue_c", "float"),
        FieldSpec("description", "description_c"),
        FieldSpec("logo", "logo_c"),
        *_system_fields(),
    ),
    options={"industry": INDUSTRY_OPTIONS},
)

DEAL = EntitySchema(
    name="deal",
    table="deal_c",
    label="Deals",
    fields=(
        ID_FIELD,
        FieldSpec("title", "title_c"),
        FieldSpec("value", "value_c", "float"),
        FieldSpec("stage", "stage_c", default="Lead"),
        FieldSpec("probability", "probability_c", "int", default=50),
        FieldSpec("contact_id", "contact_id_c", "lookup"),
        FieldSpec("expected_close_date", "expected_close_date_c", "date"),
        FieldSpec("priority", "priority_c", default="Medium"),
        FieldSpec("notes", "notes_c"),
        *_system_fields(),
    ),
    search_field="title",
    create_defaults={"stage": "Lead", "probability": 50, "priority": "Medium"},
    options={"stage": DEFAULT_STAGES, "priority": PRIORITY_OPTIONS},
)

ACTIVITY = EntitySchema(
    name="activity",
    table="activity_c",
    label="Activities",
    fields=(
        ID_FIELD,
        FieldSpec("type", "type_c"),
        FieldSpec("description", "description_c"),
        FieldSpec("contact_id", "contact_id_c", "lookup"),
        FieldSpec("deal_id", "deal_id_c", "lookup"),
        FieldSpec("timestamp", "timestamp_c", "date"),
        FieldSpec("user_id", "user_id_c", "int"),
    ),
    search_field="description",
    order_by="timestamp_c",
    create_defaults={"timestamp": _utc_now_iso},
    options={"type": ACTIVITY_TYPES},
)

QUOTE = EntitySchema(
    name="quote",
    table="quote_c",
    label="Quotes",
    fields=(
        ID_FIELD,
        FieldSpec("name", "Name"),
        FieldSpec("title", "title_c"),
        FieldSpec("company_id", "company_id_c", "lookup"),
        FieldSpec("contact_id", "contact_id_c", "lookup"),
        FieldSpec("deal_id", "deal_id_c", "lookup"),
        FieldSpec("quote_date", "quote_date_c", "date"),
        FieldSpec("status", "status_c", default="Draft"),
        FieldSpec("delivery_method", "delivery_method_c"),
        FieldSpec("expires_on", "expires_on_c", "date"),
        FieldSpec("bill_to_name", "bill_to_name_c", detail=True),
        FieldSpec("bill_to_street", "bill_to_street_c", detail=True),
        FieldSpec("bill_to_city", "bill_to_city_c", detail=True),
        FieldSpec("bill_to_state", "bill_to_state_c", detail=True),
        FieldSpec("bill_to_country", "bill_to_country_c", detail=True),
        FieldSpec("bill_to_pincode", "bill_to_pincode_c", detail=True),
        FieldSpec("ship_to_name", "ship_to_name_c", detail=True),
        FieldSpec("ship_to_street", "ship_to_street_c", detail=True),
        FieldSpec("ship_to_city", "ship_to_city_c", detail=True),
        FieldSpec("ship_to_state", "ship_to_state_c", detail=True),
        FieldSpec("ship_to_country", "ship_to_country_c", detail=True),
        FieldSpec("ship_to_pincode", "ship_to_pincode_c", detail=True),
        FieldSpec("notes", "notes_c", detail=True),
        FieldSpec("total_amount", "total_amount_c", "float"),
        FieldSpec("discount", "discount_c", "float"),
        FieldSpec("tags", "Tags", "tags"),
        FieldSpec("owner_id", "Owner", "lookup", writable=False),
        *_system_fields(),
    ),
    search_field="title",
    order_by="CreatedOn",
    page_limit=50,
    create_defaults={"status": "Draft"},
    options={"status": QUOTE_STATUSES, "delivery_method": DELIVERY_METHODS},
)

SALES_ORDER = EntitySchema(
    name="sales_order",
    table="sales_order_c",
    label="Sales Orders",
    fields=(
        ID_FIELD,
        FieldSpec("name", "Name"),
        FieldSpec("order_date", "order_date_c", "date"),
        FieldSpec("customer_id", "customer_id_c", "lookup"),
        FieldSpec("total_amount", "total_amount_c", "float"),
        FieldSpec("status", "status_c", default="Draft"),
        FieldSpec("shipping_address", "shipping_address_c"),
        FieldSpec("billing_address", "billing_address_c"),
        FieldSpec("notes", "notes_c"),
        FieldSpec("tags", "Tags", "tags"),
        *_system_fields(),
    ),
    create_defaults={"status": "Draft", "order_date": _utc_now_iso},
    options={"status": SALES_ORDER_STATUSES},
)

TASK = EntitySchema(
    name="task",
    table="tasks_c",
    label="Tasks",
    fields=(
        ID_FIELD,
        FieldSpec("name", "Name"),
        FieldSpec("title", "title_c"),
        FieldSpec("description", "description_c"),
        FieldSpec("status", "status_c", default="Open"),
        FieldSpec("priority", "priority_c", default="Medium"),
        FieldSpec("due_date", "due_date_c", "date"),
        FieldSpec("assigned_to_id", "assigned_to_id_c", "lookup"),
        FieldSpec("activity_id", "activity_id_c", "lookup"),
        FieldSpec("deal_id", "deal_id_c", "lookup"),
        *_system_fields(),
    ),
    search_field="title",
    create_defaults={"status": "Open", "priority": "Medium"},
    options={"status": TASK_STATUSES, "priority": PRIORITY_OPTIONS},
)

PIPELINE_STAGE = EntitySchema(
    name="pipeline_stage",
    table="pipeline_stage_c",
    label="Pipeline Stages",
    fields=(
        ID_FIELD,
        FieldSpec("name", "Name"),
        FieldSpec("order", "order_c", "int"),
        FieldSpec("color", "color_c"),
    ),
    order_by="order_c",
    order_desc=False,
)

ENTITIES: Dict[str, EntitySchema] = {
    s.name: s for s in (CONTACT, COMPANY, DEAL, ACTIVITY, QUOTE, SALES_ORDER, TASK, PIPELINE_STAGE)
}


_PLURALS = {
    "contacts": "contact",
    "companies": "company",
    "deals": "deal",
    "activities": "activity",
    "quotes": "quote",
    "sales_orders": "sales_order",
    "tasks": "task",
    "pipeline_stages": "pipeline_stage",
    "stages": "pipeline_stage",
}


def get_schema(entity: str) -> EntitySchema:
    key = entity.replace("-", "_").strip().lower()
    key = _PLURALS.get(key, key)
    if key not in ENTITIES:
        raise KeyError(f"Unknown entity: {entity}")
    return ENTITIES[key]


# ---------- value coercion ----------

def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if out != out:  # NaN
        return None
    return out


def _as_int(value: Any) -> Optional[int]:
    out = _as_float(value)
    return int(out) if out is not None else None


def _lookup_id(value: Any) -> Optional[int]:
    if isinstance(value, Mapping):
        value = value.get("Id", value.get("id"))
    out = _as_int(value)
    return out if out else None


def _lookup_name(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        name = value.get("Name", value.get("name"))
        return str(name) if name is not None else None
    return None


def split_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    return [str(t).strip() for t in items if t is not None and str(t).strip()]


def _as_date_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _to_ui_value(spec: FieldSpec, raw: Any) -> Any:
    if spec.kind == "str":
        return str(raw) if raw is not None else spec.empty()
    if spec.kind == "int":
        out = _as_int(raw)
        return out if out is not None else spec.empty()
    if spec.kind == "float":
        out = _as_float(raw)
        return out if out is not None else spec.empty()
    if spec.kind == "tags":
        return split_tags(raw) if raw is not None else spec.empty()
    if spec.kind == "lookup":
        return _lookup_id(raw)
    return _as_date_str(raw) or spec.empty()


def _to_backend_value(spec: FieldSpec, value: Any) -> Any:
    if spec.kind == "str":
        return "" if value is None else str(value)
    if spec.kind == "int":
        return _as_int(value) or 0
    if spec.kind == "float":
        return _as_float(value) or 0.0
    if spec.kind == "tags":
        return ",".join(split_tags(value))
    if spec.kind == "lookup":
        return _lookup_id(value)
    return _as_date_str(value)


def to_ui_shape(schema: EntitySchema, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Map one backend row to a UI record; every field is present, absent ones take defaults."""
    record: Dict[str, Any] = {}
    for spec in schema.fields:
        raw = row.get(spec.backend)
        record[spec.ui] = _to_ui_value(spec, raw)
        if spec.display_column:
            record[spec.display_column] = _lookup_name(raw)
    return record


def to_backend_shape(
    schema: EntitySchema,
    record: Mapping[str, Any],
    *,
    for_create: bool = False,
) -> Dict[str, Any]:
    """
    Map a UI record to a backend payload.
    Only writable fields present in ``record`` are sent; ``for_create`` also fills create defaults.
    """
    source: Dict[str, Any] = {}
    if for_create:
        for key, default in schema.create_defaults.items():
            source[key] = default() if callable(default) else default
    for key, value in record.items():
        if for_create and key in schema.create_defaults and (value is None or value == ""):
            continue
        source[key] = value

    prepared: Dict[str, Any] = {}
    for spec in schema.fields:
        if not spec.writable or spec.ui not in source:
            continue
        prepared[spec.backend] = _to_backend_value(spec, source[spec.ui])
    return prepared
