from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping, Optional, Tuple

TimeWindow = Literal["all", "today", "week", "month"]
SortDirection = Literal["asc", "desc"]

TIME_WINDOWS: Tuple[str, ...] = ("all", "today", "week", "month")


@dataclass(frozen=True)
class SortSpec:
    key: str = "updated_at"
    direction: SortDirection = "desc"

    def toggled(self, key: str) -> "SortSpec":
        """Clicking the active column flips direction; a new column starts ascending."""
        if key == self.key:
            return SortSpec(key, "asc" if self.direction == "desc" else "desc")
        return SortSpec(key, "asc")


@dataclass(frozen=True)
class ViewFilters:
    search: str = ""
    status: str = ""
    priority: str = ""
    industry: str = ""
    tag: str = ""
    stage: str = ""
    activity_type: str = "all"
    time_window: TimeWindow = "all"
    sort: SortSpec = SortSpec()
    recent_limit: int = 5
    upcoming_days: int = 7


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_bounded_int(value: object, default: int, lo: int, hi: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        out = default
    return max(lo, min(hi, out))


def normalize_filters(raw: Optional[Mapping[str, object]], *, default_sort: Optional[SortSpec] = None) -> ViewFilters:
    raw = raw or {}
    default_sort = default_sort or SortSpec()

    sort_raw = raw.get("sort") or {}
    if not isinstance(sort_raw, Mapping):
        sort_raw = {}
    sort_key = _as_text(sort_raw.get("key") or raw.get("sort_key")) or default_sort.key
    direction = _as_text(sort_raw.get("direction") or raw.get("sort_direction")).lower() or default_sort.direction
    if direction not in ("asc", "desc"):
        direction = default_sort.direction

    time_window = _as_text(raw.get("time_window")).lower() or "all"
    if time_window not in TIME_WINDOWS:
        time_window = "all"

    activity_type = _as_text(raw.get("activity_type")) or "all"

    return ViewFilters(
        search=_as_text(raw.get("search")),
        status=_as_text(raw.get("status")),
        priority=_as_text(raw.get("priority")),
        industry=_as_text(raw.get("industry")),
        tag=_as_text(raw.get("tag")),
        stage=_as_text(raw.get("stage")),
        activity_type=activity_type,
        time_window=time_window,  # type: ignore[arg-type]
        sort=SortSpec(sort_key, direction),  # type: ignore[arg-type]
        recent_limit=_as_bounded_int(raw.get("recent_limit", 5), 5, 1, 50),
        upcoming_days=_as_bounded_int(raw.get("upcoming_days", 7), 7, 1, 90),
    )
