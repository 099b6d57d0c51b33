from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from txn_core.config import TABLE_PAGE_SIZE
from txn_core.engine import search_table
from txn_core.filters import FilterSelection


MAX_PAGE_SIZE = 500


def compute_table(
    filters: FilterSelection,
    ctx: Dict[str, Any],
    *,
    q: str = "",
    page: int = 1,
    page_size: int = TABLE_PAGE_SIZE,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    matched = search_table(filtered, q)

    page_size = max(1, min(MAX_PAGE_SIZE, int(page_size)))
    total = int(len(matched))
    pages = max(1, math.ceil(total / page_size))
    page = max(1, min(pages, int(page)))
    start = (page - 1) * page_size
    rows = matched.iloc[start : start + page_size]

    return {
        "filters": asdict(filters),
        "query": (q or "").strip(),
        "total": total,
        "page": page,
        "pages": pages,
        "page_size": page_size,
        "columns": [str(c) for c in filtered.columns],
        "rows": rows.to_dict(orient="records"),
    }
