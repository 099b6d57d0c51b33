from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from txn_core.charts import histogram_chart, to_vega_spec
from txn_core.config import HISTOGRAM_BINS
from txn_core.engine import account_age_distribution, user_transactions_distribution
from txn_core.filters import FilterSelection


def compute_profile(filters: FilterSelection, ctx: Dict[str, Any], *, bins: int = HISTOGRAM_BINS) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    bins = max(1, int(bins))
    account_age = account_age_distribution(filtered, bins)
    user_txns = user_transactions_distribution(filtered, bins)

    charts: Dict[str, Any] = {}
    if not account_age.empty:
        charts["account_age"] = to_vega_spec(
            histogram_chart(account_age, x_title="Account Age (days)", y_title="Count of Transactions")
        )
    if not user_txns.empty:
        charts["transactions_per_user"] = to_vega_spec(
            histogram_chart(user_txns, x_title="Total Transactions Per User (field)", y_title="Count of Records")
        )

    return {
        "filters": asdict(filters),
        "bins": bins,
        "account_age_distribution": account_age.to_dict(orient="records"),
        "user_transactions_distribution": user_txns.to_dict(orient="records"),
        "charts": charts,
    }
