from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from txn_core.charts import daily_line_chart, to_vega_spec
from txn_core.data import DATE_COL, format_kpis
from txn_core.engine import compute_kpis, daily_fraud_counts, daily_transaction_counts
from txn_core.filters import FilterSelection


def compute_overview(filters: FilterSelection, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())

    kpis = compute_kpis(filtered)
    daily = daily_transaction_counts(filtered)
    daily_fraud = daily_fraud_counts(filtered)

    charts: Dict[str, Any] = {}
    if not daily.empty:
        charts["transactions_over_time"] = to_vega_spec(
            daily_line_chart(daily, date_col=DATE_COL, value_col="transactions", title="Number of Transactions")
        )
    if not daily_fraud.empty:
        charts["fraud_over_time"] = to_vega_spec(
            daily_line_chart(daily_fraud, date_col=DATE_COL, value_col="fraud_count", title="Fraudulent Transactions")
        )

    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "kpi_display": format_kpis(kpis),
        "daily_transactions": daily.to_dict(orient="records"),
        "daily_fraud": daily_fraud.to_dict(orient="records"),
        "charts": charts,
    }
