from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from txn_core.charts import ranked_bar_chart, to_vega_spec
from txn_core.data import CATEGORY_COL, COUNTRY_COL
from txn_core.engine import amount_by_category, fraud_rate_by_country
from txn_core.filters import FilterSelection


def compute_breakdown(filters: FilterSelection, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    by_category = amount_by_category(filtered)
    by_country = fraud_rate_by_country(filtered)

    charts: Dict[str, Any] = {}
    if not by_category.empty:
        charts["amount_by_category"] = to_vega_spec(
            ranked_bar_chart(
                by_category,
                key_col=CATEGORY_COL,
                value_col="total_amount",
                key_title="Merchant Category",
                value_title="Total Amount",
                value_format="$,.0f",
            )
        )
    if not by_country.empty:
        # Highest rate on top.
        charts["fraud_rate_by_country"] = to_vega_spec(
            ranked_bar_chart(
                by_country.iloc[::-1],
                key_col=COUNTRY_COL,
                value_col="fraud_rate",
                key_title="Country",
                value_title="Fraud Rate",
                value_format=".1%",
            )
        )

    return {
        "filters": asdict(filters),
        "amount_by_category": by_category.to_dict(orient="records"),
        "fraud_rate_by_country": by_country.to_dict(orient="records"),
        "charts": charts,
    }
