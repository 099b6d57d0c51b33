"""Filter-and-aggregate engine.

Every function here is pure: it reads the frame it is given, never mutates it,
and degrades to zero scalars or an empty (correctly-columned) frame when the
filtered view is empty.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from txn_core.config import HISTOGRAM_BINS
from txn_core.data import (
    ACCOUNT_AGE_COL,
    AMOUNT_COL,
    CATEGORY_COL,
    CHANNEL_COL,
    COUNTRY_COL,
    DATE_COL,
    FRAUD_COL,
    USER_TXN_COL,
    TransactionDataset,
)
from txn_core.filters import ALL, FilterSelection, normalize_filters


def _day(value: Optional[date]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def _fraud_flags(frame: pd.DataFrame) -> pd.Series:
    return pd.to_numeric(frame[FRAUD_COL], errors="coerce").eq(1)


def filter_transactions(frame: pd.DataFrame, selection: FilterSelection) -> pd.DataFrame:
    """Rows matching every clause of the selection, in their original order."""
    mask = pd.Series(True, index=frame.index)

    start, end = _day(selection.date_start), _day(selection.date_end)
    if start is not None:
        mask &= frame[DATE_COL] >= start
    if end is not None:
        mask &= frame[DATE_COL] <= end

    for col, wanted in (
        (COUNTRY_COL, selection.country),
        (CHANNEL_COL, selection.channel),
        (CATEGORY_COL, selection.merchant_category),
    ):
        if wanted != ALL:
            mask &= frame[col] == wanted

    if selection.fraud_only:
        mask &= _fraud_flags(frame)

    return frame.loc[mask]


def compute_kpis(frame: pd.DataFrame) -> Dict[str, Any]:
    count = int(len(frame))
    amounts = frame[AMOUNT_COL].dropna() if count else pd.Series(dtype=float)
    total_amount = float(amounts.sum()) if not amounts.empty else 0.0
    avg_amount = float(amounts.mean()) if not amounts.empty else 0.0
    fraud_count = int(_fraud_flags(frame).sum()) if count else 0
    return {
        "transaction_count": count,
        "total_amount": total_amount,
        "avg_amount": avg_amount,
        "fraud_rate": fraud_count / count if count else 0.0,
    }


def daily_transaction_counts(frame: pd.DataFrame) -> pd.DataFrame:
    if frame.empty:
        return pd.DataFrame({DATE_COL: pd.Series(dtype=object), "transactions": pd.Series(dtype=int)})
    return (
        frame.groupby(DATE_COL)
        .size()
        .reset_index(name="transactions")
        .sort_values(DATE_COL)
        .reset_index(drop=True)
    )


def daily_fraud_counts(frame: pd.DataFrame) -> pd.DataFrame:
    """Fraud count per date present in the frame; absent dates are not zero-filled."""
    if frame.empty:
        return pd.DataFrame({DATE_COL: pd.Series(dtype=object), "fraud_count": pd.Series(dtype=int)})
    return (
        frame.assign(_fraud=_fraud_flags(frame).astype(int))
        .groupby(DATE_COL)["_fraud"]
        .sum()
        .reset_index(name="fraud_count")
        .sort_values(DATE_COL)
        .reset_index(drop=True)
    )


def amount_by_category(frame: pd.DataFrame) -> pd.DataFrame:
    if frame.empty:
        return pd.DataFrame({CATEGORY_COL: pd.Series(dtype=object), "total_amount": pd.Series(dtype=float)})
    grouped = frame.groupby(CATEGORY_COL)[AMOUNT_COL].sum().reset_index(name="total_amount")
    grouped["total_amount"] = grouped["total_amount"].astype(float)
    return grouped.sort_values(["total_amount", CATEGORY_COL], ascending=[False, True]).reset_index(drop=True)


def fraud_rate_by_country(frame: pd.DataFrame) -> pd.DataFrame:
    if frame.empty:
        return pd.DataFrame(
            {
                COUNTRY_COL: pd.Series(dtype=object),
                "transactions": pd.Series(dtype=int),
                "fraud_rate": pd.Series(dtype=float),
            }
        )
    grouped = (
        frame.assign(_fraud=_fraud_flags(frame).astype(int))
        .groupby(COUNTRY_COL)
        .agg(transactions=("_fraud", "size"), fraud_count=("_fraud", "sum"))
        .reset_index()
    )
    denom = grouped["transactions"].where(grouped["transactions"] > 0)
    grouped["fraud_rate"] = (grouped["fraud_count"] / denom).fillna(0.0).astype(float)
    grouped = grouped[grouped["transactions"] > 0]
    return (
        grouped[[COUNTRY_COL, "transactions", "fraud_rate"]]
        .sort_values(["fraud_rate", COUNTRY_COL], ascending=[True, True])
        .reset_index(drop=True)
    )


def histogram(values: pd.Series, bins: int = HISTOGRAM_BINS) -> pd.DataFrame:
    """Equal-width histogram over [min, max] of the non-null values."""
    if bins < 1:
        raise ValueError(f"bins must be positive, got {bins}")
    clean = pd.to_numeric(values, errors="coerce").dropna()
    clean = clean[np.isfinite(clean)]
    if clean.empty:
        return pd.DataFrame(
            {
                "bin_start": pd.Series(dtype=float),
                "bin_end": pd.Series(dtype=float),
                "count": pd.Series(dtype=int),
            }
        )
    counts, edges = np.histogram(
        clean.to_numpy(dtype=float),
        bins=bins,
        range=(float(clean.min()), float(clean.max())),
    )
    return pd.DataFrame({"bin_start": edges[:-1], "bin_end": edges[1:], "count": counts.astype(int)})


def account_age_distribution(frame: pd.DataFrame, bins: int = HISTOGRAM_BINS) -> pd.DataFrame:
    return histogram(frame[ACCOUNT_AGE_COL] if not frame.empty else pd.Series(dtype=float), bins)


def user_transactions_distribution(frame: pd.DataFrame, bins: int = HISTOGRAM_BINS) -> pd.DataFrame:
    return histogram(frame[USER_TXN_COL] if not frame.empty else pd.Series(dtype=float), bins)


def search_table(frame: pd.DataFrame, query: str) -> pd.DataFrame:
    """Case-insensitive substring search across every column's text form."""
    q = (query or "").strip().lower()
    if not q or frame.empty:
        # Never hand out the cached dataset frame itself.
        return frame.copy()
    text = frame.astype(str)
    mask = text.apply(lambda s: s.str.lower().str.contains(q, regex=False, na=False)).any(axis=1)
    return frame.loc[mask]


def prepare_context(filters: dict | FilterSelection, dataset: TransactionDataset) -> Dict[str, Any]:
    """Filter once per request; page compute functions read from the returned context."""
    selection = filters if isinstance(filters, FilterSelection) else normalize_filters(filters, dataset=dataset)
    return {
        "filters": selection,
        "dataset": dataset,
        "filtered": filter_transactions(dataset.frame, selection),
    }


def recompute(frame: pd.DataFrame, selection: FilterSelection, *, bins: int = HISTOGRAM_BINS) -> Dict[str, Any]:
    filtered = filter_transactions(frame, selection)
    return {
        "filtered": filtered,
        "kpis": compute_kpis(filtered),
        "daily_transactions": daily_transaction_counts(filtered),
        "daily_fraud": daily_fraud_counts(filtered),
        "amount_by_category": amount_by_category(filtered),
        "fraud_rate_by_country": fraud_rate_by_country(filtered),
        "account_age_distribution": account_age_distribution(filtered, bins),
        "user_transactions_distribution": user_transactions_distribution(filtered, bins),
    }
