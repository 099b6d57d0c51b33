from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import pandas as pd

if TYPE_CHECKING:
    from txn_core.data import TransactionDataset


ALL = "all"
_WILDCARD_TOKENS = {"", "all", "all countries", "all channels", "all categories"}


@dataclass(frozen=True)
class FilterSelection:
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    country: str = ALL
    channel: str = ALL
    merchant_category: str = ALL
    fraud_only: bool = False


def _as_category(value: object) -> str:
    if value is None:
        return ALL
    s = str(value).strip()
    if s.lower() in _WILDCARD_TOKENS:
        return ALL
    return s


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.Timestamp(str(value))
    except (ValueError, TypeError):
        return None
    if pd.isna(ts):
        return None
    return ts.date()


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "fraud"}
    return bool(value)


def normalize_filters(raw: dict, *, dataset: Optional["TransactionDataset"] = None) -> FilterSelection:
    """Build a FilterSelection from loosely-typed UI/API input.

    Missing date bounds default to the dataset bounds. Blank and "All" style
    categorical values collapse to the wildcard; anything else is kept as is,
    so a value outside the option set simply matches nothing.
    """
    date_start = _as_date(raw.get("date_start"))
    date_end = _as_date(raw.get("date_end"))
    if dataset is not None:
        date_start = date_start or dataset.min_date
        date_end = date_end or dataset.max_date

    fraud_only = raw.get("fraud_only")
    if fraud_only is None:
        # radio-style input: "all" / "fraud"
        fraud_only = raw.get("fraud_filter", False)

    return FilterSelection(
        date_start=date_start,
        date_end=date_end,
        country=_as_category(raw.get("country")),
        channel=_as_category(raw.get("channel")),
        merchant_category=_as_category(raw.get("merchant_category", raw.get("category"))),
        fraud_only=_as_bool(fraud_only),
    )
