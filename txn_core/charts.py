from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _temporal(df: pd.DataFrame, col: str) -> pd.DataFrame:
    out = df.copy()
    out[col] = pd.to_datetime(out[col])
    return out


def daily_line_chart(df: pd.DataFrame, *, date_col: str, value_col: str, title: str) -> alt.Chart:
    return (
        alt.Chart(_temporal(df, date_col))
        .mark_line(point={"filled": True, "size": 50})
        .encode(
            x=alt.X(f"{date_col}:T", title="Date", axis=alt.Axis(grid=False)),
            y=alt.Y(f"{value_col}:Q", title=title, axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip(f"{date_col}:T", title="Date"), alt.Tooltip(f"{value_col}:Q", title=title, format=",")],
        )
        .properties(height=260)
    )


def ranked_bar_chart(df: pd.DataFrame, *, key_col: str, value_col: str, key_title: str, value_title: str, value_format: str) -> alt.Chart:
    """Horizontal bars in the row order of df (already ranked by the engine)."""
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            y=alt.Y(f"{key_col}:N", title=key_title, sort=list(df[key_col])),
            x=alt.X(f"{value_col}:Q", title=value_title, axis=alt.Axis(format=value_format, gridDash=[4, 4])),
            tooltip=[alt.Tooltip(f"{key_col}:N", title=key_title), alt.Tooltip(f"{value_col}:Q", title=value_title, format=value_format)],
        )
        .properties(height=max(160, 24 * len(df)))
    )


def histogram_chart(df: pd.DataFrame, *, x_title: str, y_title: str) -> alt.Chart:
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("bin_start:Q", title=x_title, bin="binned"),
            x2="bin_end:Q",
            y=alt.Y("count:Q", title=y_title),
            tooltip=[
                alt.Tooltip("bin_start:Q", title="From", format=",.1f"),
                alt.Tooltip("bin_end:Q", title="To", format=",.1f"),
                alt.Tooltip("count:Q", title="Count", format=","),
            ],
        )
        .properties(height=260)
    )
