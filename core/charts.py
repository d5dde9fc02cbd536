from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def stage_value_chart(rows: Sequence[Mapping[str, Any]], *, colors: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Horizontal bars of deal value per stage, kept in stage order."""
    df = pd.DataFrame(list(rows), columns=["stage", "count", "value"])
    order: List[str] = df["stage"].tolist()
    color = alt.Color("stage:N", legend=None, sort=order)
    if colors and len(colors) == len(order):
        color = alt.Color("stage:N", legend=None, sort=order, scale=alt.Scale(domain=order, range=list(colors)))
    chart = (
        alt.Chart(df)
        .mark_bar(cornerRadiusEnd=3)
        .encode(
            y=alt.Y("stage:N", title=None, sort=order),
            x=alt.X("value:Q", title="Deal Value", axis=alt.Axis(format="$,.0f", gridDash=[4, 4])),
            color=color,
            tooltip=[
                alt.Tooltip("stage:N", title="Stage"),
                alt.Tooltip("count:Q", title="Deals"),
                alt.Tooltip("value:Q", title="Value", format="$,.0f"),
            ],
        )
    )
    return to_vega_spec(chart)


def category_count_chart(counts: Mapping[str, int], *, title: str) -> Dict[str, Any]:
    df = pd.DataFrame({"category": list(counts.keys()), "count": [int(v) for v in counts.values()]})
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("category:N", title=title, sort="-y"),
            y=alt.Y("count:Q", title="Count", axis=alt.Axis(format="d")),
            tooltip=[alt.Tooltip("category:N", title=title), alt.Tooltip("count:Q", title="Count")],
        )
    )
    return to_vega_spec(chart)


def daily_trend_chart(daily: pd.DataFrame) -> Dict[str, Any]:
    """``daily`` has ``day`` (yyyy-mm-dd), ``type`` and ``count`` columns."""
    hover = alt.selection_point(fields=["type"], on="mouseover", empty="all")
    chart = (
        alt.Chart(daily)
        .mark_bar()
        .encode(
            x=alt.X("day:T", title="Day", axis=alt.Axis(format="%b %d", grid=False)),
            y=alt.Y("count:Q", title="Activities", stack=True, axis=alt.Axis(format="d", gridDash=[4, 4])),
            color=alt.Color("type:N", title="Type"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.3)),
            tooltip=[
                alt.Tooltip("day:T", title="Day", format="%Y-%m-%d"),
                alt.Tooltip("type:N", title="Type"),
                alt.Tooltip("count:Q", title="Count"),
            ],
        )
        .add_params(hover)
    )
    return to_vega_spec(chart)
