from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from core.schema import ENTITIES, EntitySchema, SortKind, get_schema, split_tags

if TYPE_CHECKING:
    from core.store import Workspace


EPOCH = pd.Timestamp("1970-01-01", tz="UTC")


def frame_key(entity: str | EntitySchema) -> str:
    schema = entity if isinstance(entity, EntitySchema) else get_schema(entity)
    return schema.label.lower().replace(" ", "_")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, set, dict)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def records_frame(records: Iterable[Mapping[str, Any]], schema: EntitySchema) -> pd.DataFrame:
    """UI records -> DataFrame carrying every schema column (extra keys are kept)."""
    df = pd.DataFrame(list(records))
    cols = list(dict.fromkeys([*schema.columns, *df.columns]))
    return df.reindex(columns=cols)


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")


def parse_number(value: Any, default: float = 0.0) -> float:
    if _is_missing(value) or isinstance(value, bool):
        return default
    try:
        out = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return default
    return default if pd.isna(out) else out


def parse_timestamp(value: Any) -> pd.Timestamp:
    """Parse to a UTC timestamp; anything unparseable sorts as the epoch."""
    if _is_missing(value) or value == "":
        return EPOCH
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    return EPOCH if pd.isna(ts) else ts


def numeric_series(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce").fillna(0.0)


def timestamp_series(s: pd.Series, *, fill: Optional[pd.Timestamp] = EPOCH) -> pd.Series:
    if s.empty:
        return pd.Series(pd.to_datetime([], utc=True), index=s.index)
    ts = pd.to_datetime(s.astype(object).where(s.notna(), None), errors="coerce", utc=True, format="mixed")
    return ts.fillna(fill) if fill is not None else ts


def format_currency_0(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"${float(value):,.0f}"


# ---------- filter / sort / group ----------

def _searchable(value: Any) -> str:
    if _is_missing(value):
        return ""
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(v) for v in value)
    return str(value)


def filter_frame(
    df: pd.DataFrame,
    *,
    search: str = "",
    search_fields: Sequence[str] = (),
    equals: Optional[Mapping[str, Any]] = None,
    tag: str = "",
    case_insensitive: bool = False,
) -> pd.DataFrame:
    """
    Free-text substring match (case-insensitive) across ``search_fields``, ANDed with
    equality on each non-empty ``equals`` entry and optional tag membership.
    Empty values match everything; row order is preserved.
    """
    if df.empty:
        return df.copy()
    mask = pd.Series(True, index=df.index)

    query = (search or "").strip()
    if query:
        hit = pd.Series(False, index=df.index)
        for col in search_fields:
            if col in df.columns:
                hit |= df[col].map(_searchable).str.contains(query, case=False, regex=False)
        mask &= hit

    for col, value in (equals or {}).items():
        if _is_missing(value) or str(value).strip() == "":
            continue
        if col not in df.columns:
            return df.iloc[0:0].copy()
        left = df[col].map(_searchable)
        right = str(value)
        if case_insensitive:
            mask &= left.str.casefold() == right.casefold()
        else:
            mask &= left == right

    if tag and "tags" in df.columns:
        mask &= df["tags"].map(lambda tags: tag in split_tags(None if _is_missing(tags) else tags))

    return df[mask].copy()


def _infer_kind(s: pd.Series) -> SortKind:
    if pd.api.types.is_bool_dtype(s):
        return "string"
    if pd.api.types.is_numeric_dtype(s):
        return "numeric"
    if pd.api.types.is_datetime64_any_dtype(s):
        return "date"
    return "string"


def sort_key_series(s: pd.Series, kind: SortKind) -> pd.Series:
    if kind == "numeric":
        return numeric_series(s)
    if kind == "date":
        return timestamp_series(s)
    return s.map(lambda v: _searchable(v).casefold())


def sort_frame(
    df: pd.DataFrame,
    key: str,
    direction: str = "asc",
    *,
    kind: Optional[SortKind] = None,
    schema: Optional[EntitySchema] = None,
) -> pd.DataFrame:
    """Stable single-key sort; values compare as numbers, dates or case-folded strings."""
    column = key
    if schema is not None and key in schema.columns:
        column = schema.sort_column(key)
        kind = kind or schema.sort_kind(key)
    if df.empty or column not in df.columns:
        return df.copy()
    kind = kind or _infer_kind(df[column])
    keys = sort_key_series(df[column], kind)
    order = keys.sort_values(ascending=direction != "desc", kind="mergesort").index
    return df.loc[order].copy()


def group_aggregate(df: pd.DataFrame, by: str, value: Optional[str] = None) -> Dict[str, Dict[str, float]]:
    """Count (and sum ``value``) per group; an empty frame gives an empty mapping."""
    if df.empty or by not in df.columns:
        return {}
    work = pd.DataFrame({"group": df[by].map(lambda v: None if _is_missing(v) else str(v))})
    work["value"] = numeric_series(df[value]) if value and value in df.columns else 0.0
    work = work.dropna(subset=["group"])
    out: Dict[str, Dict[str, float]] = {}
    for group, chunk in work.groupby("group", sort=False):
        entry: Dict[str, float] = {"count": int(len(chunk))}
        if value:
            entry["sum"] = float(chunk["value"].sum())
        out[str(group)] = entry
    return out


def unique_values(df: pd.DataFrame, col: str) -> List[str]:
    if df.empty or col not in df.columns:
        return []
    values = set()
    for v in df[col]:
        if isinstance(v, (list, tuple, set)):
            values.update(str(x) for x in v if str(x).strip())
        elif not _is_missing(v) and str(v).strip():
            values.add(str(v))
    return sorted(values)


# ---------- time windows ----------

def as_utc(now: Optional[Any] = None) -> pd.Timestamp:
    ts = pd.Timestamp.now(tz="UTC") if now is None else pd.Timestamp(now)
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")


def start_of_week(now: pd.Timestamp) -> pd.Timestamp:
    """Weeks start on Sunday at midnight."""
    day = as_utc(now).normalize()
    return day - pd.Timedelta(days=(day.dayofweek + 1) % 7)


def start_of_month(now: pd.Timestamp) -> pd.Timestamp:
    return as_utc(now).normalize().replace(day=1)


def week_windows(now: pd.Timestamp) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """(prior week start, current week start); the prior window ends where the current one begins."""
    current = start_of_week(now)
    return current - pd.Timedelta(days=7), current


def time_window_mask(s: pd.Series, window: str, now: Optional[Any] = None) -> pd.Series:
    if window == "all" or s.empty:
        return pd.Series(True, index=s.index)
    now = as_utc(now)
    ts = timestamp_series(s, fill=None)
    if window == "today":
        return (ts.dt.normalize() == now.normalize()).fillna(False)
    if window == "week":
        return (ts >= start_of_week(now)).fillna(False)
    if window == "month":
        return (ts >= start_of_month(now)).fillna(False)
    return pd.Series(True, index=s.index)


def week_over_week(current: int, prior: int) -> int:
    """Percentage change between two weekly counts; a zero prior week counts as +100%."""
    if prior == 0:
        return 100
    return int(math.floor((current - prior) / prior * 100 + 0.5))


def count_week_windows(s: pd.Series, now: Optional[Any] = None) -> Tuple[int, int]:
    """(this week, last week) counts of the timestamps in ``s``."""
    if s.empty:
        return 0, 0
    prior_start, current_start = week_windows(as_utc(now))
    ts = timestamp_series(s, fill=None)
    this_week = int((ts >= current_start).sum())
    last_week = int(((ts >= prior_start) & (ts < current_start)).sum())
    return this_week, last_week


# ---------- loading / context ----------

def load_dashboard_data(
    workspace: "Workspace",
    entities: Optional[Iterable[str]] = None,
    *,
    refresh: bool = False,
) -> Dict[str, object]:
    stores = workspace.load(entities, refresh=refresh)
    data_ctx: Dict[str, object] = {}
    errors: Dict[str, str] = {}
    for name, store in stores.items():
        data_ctx[frame_key(name)] = store.frame()
        if store.error:
            errors[name] = store.error
    data_ctx["errors"] = errors
    return data_ctx


def _fill_lookup_names(
    df: pd.DataFrame,
    id_col: str,
    name_col: str,
    source: pd.DataFrame,
    source_name_col: str,
) -> pd.DataFrame:
    if df.empty or id_col not in df.columns or source.empty or source_name_col not in source.columns:
        return df
    names = {}
    for rid, name in zip(source["id"], source[source_name_col]):
        if not _is_missing(rid) and not _is_missing(name):
            names[int(rid)] = str(name)
    resolved = df[id_col].map(lambda v: None if _is_missing(v) else names.get(int(v)))
    if name_col in df.columns:
        df[name_col] = df[name_col].where(df[name_col].notna(), resolved)
    else:
        df[name_col] = resolved
    return df


def _empty(entity: str) -> pd.DataFrame:
    return records_frame([], ENTITIES[entity])


def prepare_context(data_ctx: Mapping[str, object], *, now: Optional[Any] = None) -> Dict[str, object]:
    """Copy the loaded frames and resolve lookup display names across entities."""
    ctx: Dict[str, object] = {}
    for name in ENTITIES:
        key = frame_key(name)
        frame = data_ctx.get(key)
        ctx[key] = frame.copy() if isinstance(frame, pd.DataFrame) else _empty(name)
    ctx["errors"] = dict(data_ctx.get("errors") or {})  # type: ignore[arg-type]
    ctx["now"] = as_utc(now)

    contacts: pd.DataFrame = ctx["contacts"]  # type: ignore[assignment]
    companies: pd.DataFrame = ctx["companies"]  # type: ignore[assignment]
    deals: pd.DataFrame = ctx["deals"]  # type: ignore[assignment]
    activities: pd.DataFrame = ctx["activities"]  # type: ignore[assignment]

    ctx["deals"] = _fill_lookup_names(deals, "contact_id", "contact_name", contacts, "name")
    ctx["activities"] = _fill_lookup_names(activities, "contact_id", "contact_name", contacts, "name")
    ctx["activities"] = _fill_lookup_names(ctx["activities"], "deal_id", "deal_name", deals, "title")  # type: ignore[arg-type]

    quotes = _fill_lookup_names(ctx["quotes"], "company_id", "company_name", companies, "name")  # type: ignore[arg-type]
    quotes = _fill_lookup_names(quotes, "contact_id", "contact_name", contacts, "name")
    ctx["quotes"] = _fill_lookup_names(quotes, "deal_id", "deal_name", deals, "title")
    ctx["sales_orders"] = _fill_lookup_names(ctx["sales_orders"], "customer_id", "customer_name", contacts, "name")  # type: ignore[arg-type]
    tasks = _fill_lookup_names(ctx["tasks"], "deal_id", "deal_name", deals, "title")  # type: ignore[arg-type]
    ctx["tasks"] = _fill_lookup_names(tasks, "activity_id", "activity_name", activities, "description")

    if not contacts.empty:
        totals: Dict[int, float] = {}
        counts: Dict[int, int] = {}
        if not deals.empty:
            for cid, value in zip(deals["contact_id"], numeric_series(deals["value"])):
                if _is_missing(cid):
                    continue
                totals[int(cid)] = totals.get(int(cid), 0.0) + float(value)
                counts[int(cid)] = counts.get(int(cid), 0) + 1
        contacts["deal_value"] = contacts["id"].map(lambda i: totals.get(int(i), 0.0) if not _is_missing(i) else 0.0)
        contacts["deal_count"] = contacts["id"].map(lambda i: counts.get(int(i), 0) if not _is_missing(i) else 0)
    else:
        contacts["deal_value"] = pd.Series(dtype=float)
        contacts["deal_count"] = pd.Series(dtype=int)
    ctx["contacts"] = contacts
    return ctx
